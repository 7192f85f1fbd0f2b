from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.students.models import Student

from .calculations import (
    FeeConfiguration,
    payment_total,
    quantize,
    sort_payments_by_date,
    student_balance,
)
from .models import FeeSetting, Payment

logger = logging.getLogger(__name__)


def _settings_for_type(config_type) -> dict:
    return {
        row.config_key: row.config_value
        for row in FeeSetting.objects.filter(config_type=config_type)
    }


def load_fee_configuration() -> FeeConfiguration:
    """Stored fee settings, falling back to the configured defaults per table."""
    development_fees = _settings_for_type(FeeSetting.TYPE_DEVELOPMENT_FEE)
    bus_stops = _settings_for_type(FeeSetting.TYPE_BUS_STOP)

    return FeeConfiguration(
        development_fees=development_fees or settings.FEEDESK_DEFAULT_DEVELOPMENT_FEES,
        bus_stops=bus_stops or settings.FEEDESK_DEFAULT_BUS_STOPS,
    )


DEFAULTS_SETTING_NAMES = {
    FeeSetting.TYPE_DEVELOPMENT_FEE: 'FEEDESK_DEFAULT_DEVELOPMENT_FEES',
    FeeSetting.TYPE_BUS_STOP: 'FEEDESK_DEFAULT_BUS_STOPS',
}


def _materialize_defaults(config_type):
    # The first edit of a table stores the defaults it was showing.
    if FeeSetting.objects.filter(config_type=config_type).exists():
        return
    defaults = getattr(settings, DEFAULTS_SETTING_NAMES[config_type])
    FeeSetting.objects.bulk_create([
        FeeSetting(config_type=config_type, config_key=str(key), config_value=quantize(value))
        for key, value in defaults.items()
    ])


def _upsert_settings(config_type, values: dict) -> int:
    _materialize_defaults(config_type)
    count = 0
    for key, value in values.items():
        key = str(key).strip()
        if not key:
            continue
        amount = quantize(value)
        if amount < 0:
            raise ValidationError(f"Fee for {key} cannot be negative.")
        FeeSetting.objects.update_or_create(
            config_type=config_type,
            config_key=key,
            defaults={'config_value': amount},
        )
        count += 1
    return count


@transaction.atomic
def update_fee_configuration(*, development_fees=None, bus_stops=None) -> FeeConfiguration:
    """Upsert the given entries; tables that are not passed are left unchanged."""
    if development_fees:
        _upsert_settings(FeeSetting.TYPE_DEVELOPMENT_FEE, development_fees)
    if bus_stops:
        _upsert_settings(FeeSetting.TYPE_BUS_STOP, bus_stops)
    return load_fee_configuration()


@transaction.atomic
def remove_bus_stop(stop_name) -> int:
    _materialize_defaults(FeeSetting.TYPE_BUS_STOP)
    deleted, _ = FeeSetting.objects.filter(
        config_type=FeeSetting.TYPE_BUS_STOP,
        config_key=stop_name,
    ).delete()
    return deleted


def _validated_amounts(development_fee, bus_fee, special_fee):
    amounts = {
        'development_fee': quantize(development_fee),
        'bus_fee': quantize(bus_fee),
        'special_fee': quantize(special_fee),
    }
    for field_name, amount in amounts.items():
        if amount < 0:
            raise ValidationError({field_name: 'Amount cannot be negative.'})
    if payment_total(**amounts) <= 0:
        raise ValidationError('Payment amount must be greater than zero.')
    return amounts


@transaction.atomic
def record_payment(
    *,
    student: Student,
    added_by,
    development_fee=0,
    bus_fee=0,
    special_fee=0,
    special_fee_type='',
) -> Payment:
    amounts = _validated_amounts(development_fee, bus_fee, special_fee)
    if amounts['special_fee'] > 0 and not (special_fee_type or '').strip():
        raise ValidationError({'special_fee_type': 'Describe the special fee being collected.'})

    payment = Payment.objects.create(
        student=student,
        student_name=student.name,
        admission_number=student.admission_number,
        school_class=student.school_class,
        division=student.division,
        special_fee_type=(special_fee_type or '').strip(),
        added_by=getattr(added_by, 'username', added_by) or '',
        **amounts,
    )
    logger.info(
        f"Recorded payment {payment.receipt_number} of {payment.total_amount} "
        f"for {payment.admission_number}"
    )
    return payment


EDITABLE_PAYMENT_FIELDS = (
    'student_name',
    'admission_number',
    'school_class',
    'division',
    'development_fee',
    'bus_fee',
    'special_fee',
    'special_fee_type',
)


@transaction.atomic
def update_payment(payment: Payment, **fields) -> Payment:
    unknown = set(fields) - set(EDITABLE_PAYMENT_FIELDS)
    if unknown:
        raise ValidationError(f"Payment fields cannot be edited: {', '.join(sorted(unknown))}.")

    for field_name, value in fields.items():
        setattr(payment, field_name, value)

    amounts = _validated_amounts(payment.development_fee, payment.bus_fee, payment.special_fee)
    for field_name, amount in amounts.items():
        setattr(payment, field_name, amount)

    payment.full_clean()
    payment.save()
    logger.info(f"Updated payment {payment.receipt_number}")
    return payment


def delete_payment(payment: Payment) -> None:
    receipt_number = payment.receipt_number
    payment.delete()
    logger.info(f"Deleted payment {receipt_number}")


def student_payment_history(student: Student):
    return sort_payments_by_date(Payment.objects.filter(student=student))


def student_fee_status(student: Student, fee_config: FeeConfiguration | None = None) -> dict:
    fee_config = fee_config or load_fee_configuration()
    payments = student_payment_history(student)
    status = student_balance(student, payments, fee_config)
    status['payments'] = payments
    status['last_payment_date'] = payments[0].payment_date if payments else None
    return status


PAYMENT_EXPORT_HEADERS = [
    'Receipt No',
    'Date',
    'Admission No',
    'Student',
    'Class',
    'Division',
    'Development Fee',
    'Bus Fee',
    'Special Fee',
    'Special Fee Type',
    'Total',
    'Added By',
]


def payment_export_rows(payments):
    return [
        [
            payment.receipt_number,
            timezone.localtime(payment.payment_date).strftime('%d/%m/%Y'),
            payment.admission_number,
            payment.student_name,
            payment.school_class,
            payment.division,
            payment.development_fee,
            payment.bus_fee,
            payment.special_fee,
            payment.special_fee_type,
            payment.total_amount,
            payment.added_by,
        ]
        for payment in payments
    ]
