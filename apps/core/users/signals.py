from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver

from apps.core.users.audit import log_audit_event


def _log_session_event(action, request, user):
    if request is None or user is None:
        return
    log_audit_event(request=request, action=action, target=user, details=f"Role={user.role}")


@receiver(user_logged_in)
def log_login(sender, request, user, **kwargs):
    _log_session_event('user.login', request, user)


@receiver(user_logged_out)
def log_logout(sender, request, user, **kwargs):
    _log_session_event('user.logout', request, user)


@receiver(user_login_failed)
def log_failed_login(sender, credentials, request=None, **kwargs):
    if request is None:
        return
    log_audit_event(
        request=request,
        action='user.login_failed',
        details=f"Username={credentials.get('username', '')}",
    )
