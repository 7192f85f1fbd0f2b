import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.mail import EmailMessage
from django.utils import timezone

from apps.core.fees.calculations import aggregate_payments, sort_payments_by_date
from apps.core.fees.models import Payment
from apps.core.fees.services import PAYMENT_EXPORT_HEADERS, payment_export_rows
from apps.core.students.models import Student
from apps.core.utils.exports import rows_to_csv_bytes

from .services import class_monthly_matrix, filter_payments

logger = logging.getLogger(__name__)


def receipt_wise_csv(payments):
    return rows_to_csv_bytes(PAYMENT_EXPORT_HEADERS, payment_export_rows(payments))


def class_monthly_csv(students, payments):
    matrix = class_monthly_matrix(students, payments)
    headers = ['Class', 'Division', 'Student Name', 'Admission No'] + matrix['month_labels'] + ['Total']
    rows = [
        [
            row['student'].school_class,
            row['student'].division,
            row['student'].name,
            row['student'].admission_number,
        ] + row['amounts'] + [row['total']]
        for row in matrix['rows']
    ]
    return rows_to_csv_bytes(headers, rows)


def build_fee_report_email(recipients, *, since=None) -> EmailMessage:
    """Receipt-wise and class monthly CSVs. `since` limits the receipts, never the monthly totals."""
    students = list(Student.objects.all())
    payments = list(Payment.objects.all())
    receipts = filter_payments(payments, date_from=since) if since else sort_payments_by_date(payments)
    totals = aggregate_payments(payments)
    today = timezone.localdate()
    school_name = settings.FEEDESK_SCHOOL_NAME

    body = (
        f"Weekly reports for the {school_name} fee desk.\n\n"
        f"Report date: {today:%d/%m/%Y}\n"
        f"Total students: {len(students)}\n"
        f"Total payments: {len(payments)}\n"
        f"Total collection: {totals['total']}\n\n"
        f"Attached:\n"
        f"1. Receipt-wise report ({len(receipts)} receipts"
        f"{f' since {since:%d/%m/%Y}' if since else ''})\n"
        f"2. Class monthly collection report\n"
    )

    message = EmailMessage(
        subject=f"{school_name} Weekly Reports - {today:%d/%m/%Y}",
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=list(recipients),
    )
    message.attach(f"receipt_wise_report_{today:%Y-%m-%d}.csv", receipt_wise_csv(receipts), 'text/csv')
    message.attach(
        f"class_monthly_collection_{today:%Y-%m-%d}.csv",
        class_monthly_csv(students, payments),
        'text/csv',
    )
    return message


def send_fee_reports(recipients=None, *, since=None) -> EmailMessage:
    recipients = list(recipients or settings.FEEDESK_REPORT_RECIPIENTS)
    if not recipients:
        raise ValidationError('No report recipients are configured.')

    message = build_fee_report_email(recipients, since=since)
    message.send()
    logger.info(f"Fee reports sent to {', '.join(recipients)}")
    return message
