"""
Fee requirement, payment aggregation and balance arithmetic.

Everything here works on already-loaded records: model instances, or any
object exposing the same attribute names. Absent data resolves to zero so
every function is total over its inputs.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from apps.core.utils.classes import DIVISION_PRICED_CLASSES

ZERO = Decimal('0.00')

PAYMENT_CATEGORIES = ('development_fee', 'bus_fee', 'special_fee')


def to_decimal(value) -> Decimal:
    return Decimal(str(value or '0'))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class FeeConfiguration:
    """Development fees keyed by class (or class-division) and bus fees keyed by stop."""

    def __init__(self, development_fees=None, bus_stops=None):
        self.development_fees = {
            str(key): quantize(value) for key, value in (development_fees or {}).items()
        }
        self.bus_stops = {
            str(key): quantize(value) for key, value in (bus_stops or {}).items()
        }

    def development_fee_for(self, key) -> Decimal:
        return self.development_fees.get(str(key), ZERO)

    def bus_fee_for(self, stop) -> Decimal:
        return self.bus_stops.get(str(stop or ''), ZERO)

    def as_dict(self):
        return {
            'development_fees': {key: str(value) for key, value in self.development_fees.items()},
            'bus_stops': {key: str(value) for key, value in self.bus_stops.items()},
        }

    def __eq__(self, other):
        if not isinstance(other, FeeConfiguration):
            return NotImplemented
        return self.development_fees == other.development_fees and self.bus_stops == other.bus_stops

    def __repr__(self):
        return (
            f"FeeConfiguration(development_fees={len(self.development_fees)}, "
            f"bus_stops={len(self.bus_stops)})"
        )


def development_fee_key(school_class, division) -> str:
    school_class = str(school_class or '').strip()
    if school_class in DIVISION_PRICED_CLASSES:
        return f"{school_class}-{division}"
    return school_class


def resolve_required_fees(student, fee_config: FeeConfiguration) -> dict:
    """Configured development fee and discounted bus fee for one student."""
    development_fee = fee_config.development_fee_for(
        development_fee_key(student.school_class, student.division)
    )
    original_bus_fee = fee_config.bus_fee_for(student.bus_stop)
    discount = quantize(getattr(student, 'bus_fee_discount', None))
    bus_fee = max(ZERO, original_bus_fee - discount)

    return {
        'development_fee': development_fee,
        'bus_fee': bus_fee,
        'original_bus_fee': original_bus_fee,
        'discount': discount,
    }


def aggregate_payments(payments) -> dict:
    totals = {category: ZERO for category in PAYMENT_CATEGORIES}
    count = 0
    for payment in payments:
        count += 1
        for category in PAYMENT_CATEGORIES:
            totals[category] += quantize(getattr(payment, category, None))

    totals['total'] = sum((totals[category] for category in PAYMENT_CATEGORIES), ZERO)
    totals['count'] = count
    return totals


def payment_total(development_fee, bus_fee, special_fee) -> Decimal:
    return quantize(development_fee) + quantize(bus_fee) + quantize(special_fee)


def balance(required, paid) -> Decimal:
    return max(ZERO, quantize(required) - quantize(paid))


def student_balance(student, payments, fee_config: FeeConfiguration) -> dict:
    """
    Required, paid and remaining amounts for one student.

    `payments` must already be restricted to the student's own payments.
    Special fees have no configured requirement and are reported as paid only.
    """
    required = resolve_required_fees(student, fee_config)
    paid = aggregate_payments(payments)

    development_remaining = balance(required['development_fee'], paid['development_fee'])
    bus_remaining = balance(required['bus_fee'], paid['bus_fee'])
    required_total = required['development_fee'] + required['bus_fee']
    paid_total = paid['development_fee'] + paid['bus_fee']

    return {
        'development_fee': {
            'total': required['development_fee'],
            'paid': paid['development_fee'],
            'remaining': development_remaining,
        },
        'bus_fee': {
            'original': required['original_bus_fee'],
            'discount': required['discount'],
            'total': required['bus_fee'],
            'paid': paid['bus_fee'],
            'remaining': bus_remaining,
        },
        'special_fee': {
            'paid': paid['special_fee'],
        },
        'grand_total': {
            'required': required_total,
            'paid': paid_total,
            'remaining': development_remaining + bus_remaining,
        },
    }


def index_payments_by_student(payments) -> dict:
    indexed = {}
    for payment in payments:
        if payment.student_id is None:
            continue
        indexed.setdefault(payment.student_id, []).append(payment)
    return indexed


def sort_payments_by_date(payments, descending=True):
    return sorted(payments, key=lambda payment: payment.payment_date, reverse=descending)
