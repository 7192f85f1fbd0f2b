"""
Rollups of student balances and payment collections.

Every function takes already-loaded students, payments and fee configuration
and returns plain row dicts ready for a table, a CSV or a PDF.
"""
from __future__ import annotations

from datetime import date, datetime

from django.utils import timezone

from apps.core.fees.calculations import (
    ZERO,
    aggregate_payments,
    index_payments_by_student,
    quantize,
    sort_payments_by_date,
    student_balance,
)
from apps.core.utils.classes import SECTIONS, class_division_key, class_number, section_for_class


def local_date(value):
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def month_key(value):
    value = local_date(value)
    return f"{value.year}-{value.month:02d}"


def month_label(key):
    year, month = key.split('-')
    return date(int(year), int(month), 1).strftime('%b %Y')


def _class_sort_key(school_class, division=''):
    number = class_number(school_class)
    return (number if number is not None else 99, str(school_class), str(division))


def _empty_balance_row(key):
    return {
        'key': key,
        'total_students': 0,
        'development_balance': ZERO,
        'bus_balance': ZERO,
        'total_balance': ZERO,
        'payment_count': 0,
        'development_collected': ZERO,
        'bus_collected': ZERO,
        'special_collected': ZERO,
        'total_collected': ZERO,
    }


def _add_collections(row, payments):
    collected = aggregate_payments(payments)
    row['payment_count'] = collected['count']
    row['development_collected'] = collected['development_fee']
    row['bus_collected'] = collected['bus_fee']
    row['special_collected'] = collected['special_fee']
    row['total_collected'] = collected['total']


def group_student_balances(students, payments, fee_config, key_func):
    """
    One row per distinct key_func(student).

    Balances are computed per student and then summed, because per-student
    bus discounts make a balance of summed payments differ.
    """
    by_student = index_payments_by_student(payments)
    rows = {}
    members = {}

    for student in students:
        key = key_func(student)
        row = rows.setdefault(key, _empty_balance_row(key))
        members.setdefault(key, []).append(student)

        status = student_balance(student, by_student.get(student.pk, []), fee_config)
        row['total_students'] += 1
        row['development_balance'] += status['development_fee']['remaining']
        row['bus_balance'] += status['bus_fee']['remaining']
        row['total_balance'] += status['grand_total']['remaining']

    return rows, members


def class_division_summary(students, payments, fee_config):
    students = list(students)
    payments = list(payments)
    rows, _ = group_student_balances(
        students,
        payments,
        fee_config,
        key_func=lambda student: class_division_key(student.school_class, student.division),
    )

    payments_by_key = {}
    for payment in payments:
        payments_by_key.setdefault(class_division_key(payment.school_class, payment.division), []).append(payment)

    result = []
    for key, row in rows.items():
        school_class, _, division = key.partition('-')
        row['school_class'] = school_class
        row['division'] = division
        _add_collections(row, payments_by_key.get(key, []))
        result.append(row)

    return sorted(result, key=lambda row: _class_sort_key(row['school_class'], row['division']))


def bus_stop_summary(students, payments, fee_config):
    students = list(students)
    payments = list(payments)
    rows, members = group_student_balances(
        students,
        payments,
        fee_config,
        key_func=lambda student: student.bus_stop or '',
    )
    by_student = index_payments_by_student(payments)

    result = []
    for key, row in rows.items():
        stop_students = members[key]
        class_counts = {}
        for student in stop_students:
            class_key = class_division_key(student.school_class, student.division)
            class_counts[class_key] = class_counts.get(class_key, 0) + 1

        stop_payments = []
        for student in stop_students:
            stop_payments.extend(by_student.get(student.pk, []))

        row['bus_stop'] = key
        row['configured_fee'] = fee_config.bus_fee_for(key)
        row['bus_numbers'] = sorted({student.bus_number for student in stop_students if student.bus_number})
        row['trip_numbers'] = sorted({student.trip_number for student in stop_students if student.trip_number})
        row['class_counts'] = [
            {'key': class_key, 'count': class_counts[class_key]}
            for class_key in sorted(class_counts, key=lambda value: _class_sort_key(*value.split('-', 1)))
        ]
        _add_collections(row, stop_payments)
        result.append(row)

    return sorted(result, key=lambda row: row['bus_stop'])


def monthly_summary(payments):
    grouped = {}
    for payment in payments:
        grouped.setdefault(month_key(payment.payment_date), []).append(payment)

    result = []
    for key, month_payments in grouped.items():
        totals = aggregate_payments(month_payments)
        year, month = key.split('-')
        result.append({
            'key': key,
            'year': int(year),
            'month': int(month),
            'label': month_label(key),
            'payment_count': totals['count'],
            'development_fee': totals['development_fee'],
            'bus_fee': totals['bus_fee'],
            'special_fee': totals['special_fee'],
            'total': totals['total'],
        })

    # Zero-padded keys sort chronologically as strings.
    return sorted(result, key=lambda row: row['key'], reverse=True)


def month_detail(payments, year, month):
    key = f"{int(year)}-{int(month):02d}"
    month_payments = [payment for payment in payments if month_key(payment.payment_date) == key]
    totals = aggregate_payments(month_payments)

    daily = {}
    for payment in month_payments:
        day = local_date(payment.payment_date)
        daily[day] = daily.get(day, ZERO) + payment.total_amount

    return {
        'key': key,
        'label': month_label(key),
        'payment_count': totals['count'],
        'development_fee': totals['development_fee'],
        'bus_fee': totals['bus_fee'],
        'special_fee': totals['special_fee'],
        'total': totals['total'],
        'daily': [{'date': day, 'total': daily[day]} for day in sorted(daily)],
        'payments': sort_payments_by_date(month_payments),
    }


def section_summary(students, payments):
    students = list(students)
    payments = list(payments)
    result = []

    for section in SECTIONS:
        section_students = [s for s in students if section_for_class(s.school_class) == section['code']]
        section_payments = [p for p in payments if section_for_class(p.school_class) == section['code']]
        totals = aggregate_payments(section_payments)

        class_rows = []
        for number in section['classes']:
            class_payments = [p for p in section_payments if class_number(p.school_class) == number]
            class_totals = aggregate_payments(class_payments)
            class_rows.append({
                'school_class': number,
                'students': sum(1 for s in section_students if class_number(s.school_class) == number),
                'payment_count': class_totals['count'],
                'development_fee': class_totals['development_fee'],
                'bus_fee': class_totals['bus_fee'],
                'special_fee': class_totals['special_fee'],
                'total': class_totals['total'],
            })

        total_students = len(section_students)
        result.append({
            'code': section['code'],
            'name': section['name'],
            'classes': section['classes'],
            'total_students': total_students,
            'payment_count': totals['count'],
            'development_fee': totals['development_fee'],
            'bus_fee': totals['bus_fee'],
            'special_fee': totals['special_fee'],
            'total': totals['total'],
            'average_per_student': quantize(totals['total'] / total_students) if total_students else ZERO,
            'class_rows': class_rows,
        })

    return result


def unpaid_students(students, payments, fee_config):
    by_student = index_payments_by_student(payments)
    rows = []

    for student in students:
        student_payments = by_student.get(student.pk, [])
        status = student_balance(student, student_payments, fee_config)
        if status['development_fee']['remaining'] <= 0 and status['bus_fee']['remaining'] <= 0:
            continue

        last_payment = max((payment.payment_date for payment in student_payments), default=None)
        rows.append({
            'student': student,
            'class_key': class_division_key(student.school_class, student.division),
            'development_balance': status['development_fee']['remaining'],
            'bus_balance': status['bus_fee']['remaining'],
            'total_balance': status['grand_total']['remaining'],
            'last_payment_date': last_payment,
        })

    rows.sort(key=lambda row: (_class_sort_key(row['student'].school_class, row['student'].division), row['student'].name))

    groups = []
    for row in rows:
        if not groups or groups[-1]['key'] != row['class_key']:
            groups.append({'key': row['class_key'], 'students': []})
        groups[-1]['students'].append(row)

    return {
        'students': rows,
        'groups': groups,
        'development_balance': sum((row['development_balance'] for row in rows), ZERO),
        'bus_balance': sum((row['bus_balance'] for row in rows), ZERO),
        'total_balance': sum((row['total_balance'] for row in rows), ZERO),
    }


def filter_payments(
    payments,
    *,
    on_date=None,
    date_from=None,
    date_to=None,
    month=None,
    school_class='',
    division='',
):
    """Payments matching the date and class filters, newest first. `month` is a "YYYY-MM" key."""
    selected = []
    for payment in payments:
        paid_on = local_date(payment.payment_date)
        if on_date and paid_on != on_date:
            continue
        if date_from and paid_on < date_from:
            continue
        if date_to and paid_on > date_to:
            continue
        if month and month_key(payment.payment_date) != month:
            continue
        if school_class and str(payment.school_class) != str(school_class):
            continue
        if division and payment.division != division:
            continue
        selected.append(payment)
    return sort_payments_by_date(selected)


MATRIX_CATEGORIES = {
    'total': 'total_amount',
    'development_fee': 'development_fee',
    'bus_fee': 'bus_fee',
    'special_fee': 'special_fee',
}


def class_monthly_matrix(students, payments, category='total'):
    """Per student and month collected amounts; students with nothing collected are left out."""
    field_name = MATRIX_CATEGORIES[category]
    payments = list(payments)
    months = sorted({month_key(payment.payment_date) for payment in payments})
    by_student = index_payments_by_student(payments)

    rows = []
    ordered = sorted(
        students,
        key=lambda student: (_class_sort_key(student.school_class, student.division), student.name),
    )
    for student in ordered:
        per_month = {key: ZERO for key in months}
        for payment in by_student.get(student.pk, []):
            per_month[month_key(payment.payment_date)] += getattr(payment, field_name)

        total = sum(per_month.values(), ZERO)
        if total == 0:
            continue
        rows.append({
            'student': student,
            'class_key': class_division_key(student.school_class, student.division),
            'amounts': [per_month[key] for key in months],
            'total': total,
        })

    return {
        'months': months,
        'month_labels': [month_label(key) for key in months],
        'rows': rows,
    }


def class_report(students, payments, fee_config, *, school_class, division, **period):
    """
    Payments and balances of one class-division, as seen by its class teacher.

    Balances always count every payment; `period` (the date keywords of
    filter_payments) narrows only the listed payments and their totals.
    """
    payments = list(payments)
    class_students = [
        student for student in students
        if str(student.school_class) == str(school_class) and student.division == division
    ]
    class_payments = filter_payments(
        [
            payment for payment in payments
            if str(payment.school_class) == str(school_class) and payment.division == division
        ],
        **period,
    )
    by_student = index_payments_by_student(payments)

    student_rows = []
    for student in sorted(class_students, key=lambda student: student.name):
        status = student_balance(student, by_student.get(student.pk, []), fee_config)
        student_rows.append({'student': student, 'status': status})

    return {
        'key': class_division_key(school_class, division),
        'students': student_rows,
        'payments': class_payments,
        'totals': aggregate_payments(class_payments),
    }
