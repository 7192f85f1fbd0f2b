import logging

from apps.core.users.models import AuditLog

logger = logging.getLogger(__name__)


def client_ip(request):
    """First X-Forwarded-For address behind a proxy, otherwise REMOTE_ADDR."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    address = forwarded.split(',')[0].strip() if forwarded else request.META.get('REMOTE_ADDR')
    return address or None


def _acting_user(request):
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return None
    return user


def _describe_target(target):
    if target is None:
        return '', ''
    return type(target).__name__, str(target.pk or '')


def log_audit_event(request, action, target=None, details=''):
    try:
        target_model, target_id = _describe_target(target)
        AuditLog.objects.create(
            user=_acting_user(request),
            action=action,
            target_model=target_model,
            target_id=target_id,
            details=details,
            method=(request.method or '')[:10],
            path=(request.path or '')[:255],
            ip_address=client_ip(request),
        )
    except Exception:
        # Audit failures never interrupt the action being audited.
        logger.exception(f"Could not write audit event {action}")
