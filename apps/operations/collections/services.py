from __future__ import annotations

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction

from apps.core.fees.calculations import ZERO, quantize
from apps.core.utils.classes import SECTION_CODES, class_division_key, class_teacher_keys, get_section, section_for_class

from .models import CollectionEntry

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_EXCESS = 'excess'
STATUS_BALANCED = 'balanced'

DEFAULT_CLERK = 'clerk'


# Capabilities

def readable_sections(user):
    if user.role in {'admin', 'clerk'}:
        return SECTION_CODES
    if user.role == 'sarvodaya':
        return (user.section,) if user.section else SECTION_CODES
    return ()


def can_record_for_section(user, section_code):
    """Teacher->section entries and section collected amounts belong to one section head."""
    return user.role == 'sarvodaya' and bool(user.section) and user.section == section_code


def can_record_clerk_handover(user):
    return user.role in {'admin', 'clerk'} or (user.role == 'sarvodaya' and not user.section)


def can_manage_entry(user, entry: CollectionEntry):
    if entry.kind == CollectionEntry.KIND_SECTION_TO_CLERK:
        return can_record_clerk_handover(user)
    return can_record_for_section(user, entry.section)


def ensure_can_manage(user, entry: CollectionEntry):
    if not can_manage_entry(user, entry):
        raise PermissionDenied('You cannot change this collection entry.')


# Entries

def _clean_amount(amount):
    amount = quantize(amount)
    if amount <= 0:
        raise ValidationError({'amount': 'Amount must be greater than zero.'})
    return amount


def _resolve_route(*, kind, source, target):
    """Return (source, target, section) for an entry, validating the hierarchy."""
    source = (source or '').strip()
    target = (target or '').strip()

    if kind == CollectionEntry.KIND_TEACHER_TO_SECTION:
        section = section_for_class(source.partition('-')[0])
        if not section or source not in class_teacher_keys(section):
            raise ValidationError({'source': f"{source or 'Class'} is not a class teacher key."})
        if target and target != section:
            raise ValidationError({'target': f"Class {source} belongs to section {section.upper()}."})
        return source, section, section

    if kind == CollectionEntry.KIND_SECTION_TO_CLERK:
        if source not in SECTION_CODES:
            raise ValidationError({'source': 'Choose a section.'})
        return source, target or DEFAULT_CLERK, source

    if kind == CollectionEntry.KIND_SECTION_COLLECTED:
        if source not in SECTION_CODES:
            raise ValidationError({'source': 'Choose a section.'})
        return source, '', source

    raise ValidationError({'kind': 'Unknown collection entry type.'})


def _ensure_can_record(user, kind, section):
    if kind == CollectionEntry.KIND_SECTION_TO_CLERK:
        allowed = can_record_clerk_handover(user)
    else:
        allowed = can_record_for_section(user, section)
    if not allowed:
        raise PermissionDenied('You cannot record this collection entry.')


@transaction.atomic
def record_collection_entry(
    *,
    user,
    kind,
    source,
    amount,
    fee_category=CollectionEntry.CATEGORY_OTHERS,
    collection_date=None,
    remarks='',
    target='',
) -> CollectionEntry:
    source, target, section = _resolve_route(kind=kind, source=source, target=target)
    _ensure_can_record(user, kind, section)

    entry = CollectionEntry(
        kind=kind,
        source=source,
        target=target,
        section=section,
        fee_category=fee_category,
        amount=_clean_amount(amount),
        remarks=(remarks or '').strip(),
        recorded_by=user,
    )
    if collection_date:
        entry.collection_date = collection_date
    entry.full_clean()
    entry.save()
    logger.info(f"{user.username} recorded {entry.kind} {entry.source} -> {entry.target or entry.section}: {entry.amount}")
    return entry


@transaction.atomic
def update_collection_entry(entry: CollectionEntry, *, user, **fields) -> CollectionEntry:
    ensure_can_manage(user, entry)

    source, target, section = _resolve_route(
        kind=entry.kind,
        source=fields.pop('source', entry.source),
        target=fields.pop('target', entry.target),
    )
    _ensure_can_record(user, entry.kind, section)

    if 'amount' in fields:
        fields['amount'] = _clean_amount(fields['amount'])
    if 'remarks' in fields:
        fields['remarks'] = (fields['remarks'] or '').strip()

    entry.source = source
    entry.target = target
    entry.section = section
    for field_name, value in fields.items():
        setattr(entry, field_name, value)
    entry.full_clean()
    entry.save()
    return entry


def delete_collection_entry(entry: CollectionEntry, *, user) -> None:
    ensure_can_manage(user, entry)
    logger.info(f"{user.username} deleted collection entry {entry.pk}")
    entry.delete()


# Reconciliation

def reconcile(expected, recorded) -> dict:
    """Signed difference: positive means still pending, negative means excess recorded."""
    expected = quantize(expected)
    recorded = quantize(recorded)
    difference = expected - recorded
    if difference > 0:
        status = STATUS_PENDING
    elif difference < 0:
        status = STATUS_EXCESS
    else:
        status = STATUS_BALANCED
    return {
        'expected': expected,
        'recorded': recorded,
        'difference': difference,
        'status': status,
    }


def _entries_of_kind(entries, kind):
    return [entry for entry in entries if entry.kind == kind]


def teacher_to_section_ledger(payments, entries, section_code):
    """Per class teacher of a section: payments collected vs amounts handed to the section head."""
    expected = {}
    for payment in payments:
        key = class_division_key(payment.school_class, payment.division)
        expected[key] = expected.get(key, ZERO) + quantize(payment.total_amount)

    recorded = {}
    for entry in _entries_of_kind(entries, CollectionEntry.KIND_TEACHER_TO_SECTION):
        if entry.target != section_code:
            continue
        recorded[entry.source] = recorded.get(entry.source, ZERO) + quantize(entry.amount)

    rows = []
    for key in class_teacher_keys(section_code):
        if key not in expected and key not in recorded:
            continue
        row = reconcile(expected.get(key, ZERO), recorded.get(key, ZERO))
        row['key'] = key
        rows.append(row)
    return rows


def section_to_clerk_ledger(entries, sections=SECTION_CODES):
    """Per section: what class teachers handed over vs what the section head passed to the clerk."""
    rows = []
    for code in sections:
        expected = sum(
            (quantize(entry.amount) for entry in _entries_of_kind(entries, CollectionEntry.KIND_TEACHER_TO_SECTION)
             if entry.target == code),
            ZERO,
        )
        recorded = sum(
            (quantize(entry.amount) for entry in _entries_of_kind(entries, CollectionEntry.KIND_SECTION_TO_CLERK)
             if entry.source == code),
            ZERO,
        )
        row = reconcile(expected, recorded)
        row['section'] = get_section(code)
        rows.append(row)
    return rows


def section_collection_summary(payments, entries, section_code):
    expected = sum(
        (quantize(payment.total_amount) for payment in payments
         if section_for_class(payment.school_class) == section_code),
        ZERO,
    )
    section_entries = [
        entry for entry in _entries_of_kind(entries, CollectionEntry.KIND_SECTION_COLLECTED)
        if entry.source == section_code
    ]
    collected = sum((quantize(entry.amount) for entry in section_entries), ZERO)

    summary = reconcile(expected, collected)
    summary.update({
        'section': get_section(section_code),
        'total_expected': summary['expected'],
        'total_collected': summary['recorded'],
        'balance': max(ZERO, summary['difference']),
        'excess': max(ZERO, -summary['difference']),
        'entry_count': len(section_entries),
    })
    return summary
