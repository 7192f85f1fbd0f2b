import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.core.fees.models import Payment

from .services import notify_payment_received

logger = logging.getLogger(__name__)


def _safe_notify(payment_id):
    payment = Payment.objects.select_related('student').filter(pk=payment_id).first()
    if not payment:
        return

    try:
        notify_payment_received(payment)
    except Exception:
        # Notifications must not affect a recorded payment.
        logger.exception(f"Could not send payment notifications for payment {payment_id}")


@receiver(post_save, sender=Payment)
def notify_after_payment_created(sender, instance: Payment, created, raw=False, **kwargs):
    if not created or raw:
        return
    transaction.on_commit(lambda: _safe_notify(instance.pk))
