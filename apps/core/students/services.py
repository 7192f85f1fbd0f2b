from __future__ import annotations

import csv
import logging
from io import StringIO
from typing import Iterable

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from apps.core.utils.classes import DIVISIONS

from .models import Student

logger = logging.getLogger(__name__)

IMPORT_FIELDS = (
    'admission_number',
    'name',
    'mobile',
    'school_class',
    'division',
    'bus_stop',
    'bus_number',
    'trip_number',
)

# Accepted spreadsheet headers for each field.
IMPORT_HEADER_ALIASES = {
    'admission no': 'admission_number',
    'admission number': 'admission_number',
    'admission_no': 'admission_number',
    'admissionno': 'admission_number',
    'name': 'name',
    'student name': 'name',
    'mobile': 'mobile',
    'mobile number': 'mobile',
    'class': 'school_class',
    'division': 'division',
    'bus stop': 'bus_stop',
    'bus_stop': 'bus_stop',
    'bus number': 'bus_number',
    'bus_number': 'bus_number',
    'trip number': 'trip_number',
    'trip_number': 'trip_number',
    'bus fee discount': 'bus_fee_discount',
    'bus_fee_discount': 'bus_fee_discount',
}


class DuplicateAdmissionNumber(ValidationError):
    def __init__(self, admission_number):
        self.admission_number = admission_number
        super().__init__(
            f"Student with admission number {admission_number} already exists.",
            code='duplicate_admission_number',
        )


def _ensure_unique_admission_number(admission_number, exclude_pk=None):
    existing = Student.objects.filter(admission_number=admission_number)
    if exclude_pk is not None:
        existing = existing.exclude(pk=exclude_pk)
    if existing.exists():
        raise DuplicateAdmissionNumber(admission_number)


@transaction.atomic
def create_student(**fields) -> Student:
    admission_number = (fields.get('admission_number') or '').strip()
    fields['admission_number'] = admission_number
    _ensure_unique_admission_number(admission_number)

    student = Student(**fields)
    student.full_clean()
    student.save()
    logger.info(f"Created student {student.admission_number} in class {student.class_key}")
    return student


@transaction.atomic
def update_student(student: Student, **fields) -> Student:
    if 'admission_number' in fields:
        fields['admission_number'] = (fields['admission_number'] or '').strip()
        _ensure_unique_admission_number(fields['admission_number'], exclude_pk=student.pk)

    for field_name, value in fields.items():
        setattr(student, field_name, value)
    student.full_clean()
    student.save()
    return student


def delete_student(student: Student) -> None:
    # Payments keep their snapshot fields; the foreign key is nulled.
    admission_number = student.admission_number
    student.delete()
    logger.info(f"Deleted student {admission_number}")


def _empty_fields(row):
    return [field for field in IMPORT_FIELDS if not (row.get(field) or '').strip()]


def import_students(rows: Iterable[dict]) -> dict:
    """
    Insert valid rows, skipping incomplete rows and duplicate admission numbers.
    Rows that fail validation count as failed, so every row is counted once.

    Each row is saved on its own, so one failure does not undo the others.
    """
    existing_numbers = set(Student.objects.values_list('admission_number', flat=True))
    success_count = 0
    skip_count = 0
    failed_count = 0
    errors = []

    for row in rows:
        row = {key: (value if value is not None else '') for key, value in row.items()}
        admission_number = str(row.get('admission_number', '')).strip()
        name = str(row.get('name', '')).strip()

        missing = _empty_fields({key: str(value) for key, value in row.items()})
        if missing:
            skip_count += 1
            errors.append(
                f"Skipped: Row with empty fields [{', '.join(missing)}] - "
                f"{name or 'Unknown'} ({admission_number or 'No admission no'})"
            )
            continue

        if admission_number in existing_numbers:
            skip_count += 1
            errors.append(f"Skipped: Student with admission number {admission_number} already exists")
            continue

        fields = {field: str(row[field]).strip() for field in IMPORT_FIELDS}
        fields['division'] = fields['division'].upper()
        if row.get('bus_fee_discount'):
            fields['bus_fee_discount'] = str(row['bus_fee_discount']).strip()

        try:
            create_student(**fields)
        except ValidationError as exc:
            failed_count += 1
            errors.append(f"Failed to add {name} ({admission_number}): {'; '.join(exc.messages)}")
            continue

        existing_numbers.add(admission_number)
        success_count += 1

    logger.info(f"Student import finished: {success_count} added, {skip_count} skipped, {failed_count} failed")
    return {
        'success_count': success_count,
        'skip_count': skip_count,
        'failed_count': failed_count,
        'errors': errors,
    }


def parse_student_csv(content: str) -> list:
    """Map a CSV export (any header spelling listed in IMPORT_HEADER_ALIASES) to import rows."""
    reader = csv.DictReader(StringIO(content))
    rows = []
    for raw_row in reader:
        row = {}
        for header, value in raw_row.items():
            if header is None:
                continue
            field = IMPORT_HEADER_ALIASES.get(header.strip().lower())
            if field:
                row[field] = (value or '').strip()
        rows.append(row)
    return rows


def filter_students(queryset, *, search='', school_class='', division='', bus_stop=''):
    if search:
        queryset = queryset.filter(
            Q(admission_number__icontains=search)
            | Q(name__icontains=search)
            | Q(mobile__icontains=search)
        )
    if school_class:
        queryset = queryset.filter(school_class=school_class)
    if division and division in DIVISIONS:
        queryset = queryset.filter(division=division)
    if bus_stop:
        queryset = queryset.filter(bus_stop=bus_stop)
    return queryset


STUDENT_EXPORT_HEADERS = [
    'Admission No',
    'Name',
    'Mobile',
    'Class',
    'Division',
    'Bus Stop',
    'Bus Number',
    'Trip Number',
    'Bus Fee Discount',
]


def student_export_rows(students):
    return [
        [
            student.admission_number,
            student.name,
            student.mobile,
            student.school_class,
            student.division,
            student.bus_stop,
            student.bus_number,
            student.trip_number,
            student.bus_fee_discount,
        ]
        for student in students
    ]
