import logging

from django.conf import settings
from django.utils.module_loading import import_string

from apps.core.fees.calculations import quantize
from apps.operations.reports.services import local_date

from .models import NotificationLog

logger = logging.getLogger(__name__)

CHANNEL_BACKEND_SETTINGS = {
    NotificationLog.CHANNEL_SMS: 'FEEDESK_SMS_BACKEND',
    NotificationLog.CHANNEL_WHATSAPP: 'FEEDESK_WHATSAPP_BACKEND',
}


def get_backend(channel):
    backend_path = getattr(settings, CHANNEL_BACKEND_SETTINGS[channel])
    return import_string(backend_path)(channel)


def format_amount(amount):
    amount = quantize(amount)
    if amount == amount.to_integral_value():
        return str(amount.to_integral_value())
    return str(amount)


def payment_received_message(payment):
    paid_on = local_date(payment.payment_date)
    return (
        f"Dear Parent, Payment of ₹{format_amount(payment.total_amount)} received for "
        f"{payment.student_name} ({payment.admission_number}). "
        f"Date: {paid_on:%d/%m/%Y}. Thank you! - {settings.FEEDESK_SCHOOL_NAME}"
    )


def send_notification(*, channel, mobile, message, payment=None) -> NotificationLog:
    """Send through the configured backend and record the outcome; never raises on delivery errors."""
    mobile = (mobile or '').strip()
    log = NotificationLog(payment=payment, channel=channel, mobile=mobile, message=message)

    if not mobile:
        log.status = NotificationLog.STATUS_SKIPPED
        log.error = 'No mobile number.'
        log.save()
        return log

    try:
        get_backend(channel).send(mobile, message)
    except Exception as exc:
        logger.exception(f"{channel} notification to {mobile} failed")
        log.status = NotificationLog.STATUS_FAILED
        log.error = str(exc) or exc.__class__.__name__
    else:
        log.status = NotificationLog.STATUS_SENT

    log.save()
    return log


def notify_payment_received(payment):
    student = payment.student
    mobile = student.mobile if student else ''
    message = payment_received_message(payment)
    return [
        send_notification(channel=channel, mobile=mobile, message=message, payment=payment)
        for channel in (NotificationLog.CHANNEL_SMS, NotificationLog.CHANNEL_WHATSAPP)
    ]
