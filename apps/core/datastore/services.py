from __future__ import annotations

import logging

from django.core.exceptions import ValidationError

from .stores import get_fee_store, snapshot_from_json, snapshot_to_json

logger = logging.getLogger(__name__)

BACKUP_CONTENT_TYPE = 'application/json'


def export_backup(store=None) -> str:
    store = store or get_fee_store()
    return snapshot_to_json(store.load())


def restore_backup(content, store=None) -> dict:
    snapshot = snapshot_from_json(content)
    if not any(snapshot.counts().values()):
        raise ValidationError('The backup file has no students, payments, fee settings or collection entries.')

    admission_numbers = [student.admission_number for student in snapshot.students]
    if len(admission_numbers) != len(set(admission_numbers)):
        raise ValidationError('The backup file repeats an admission number.')

    store = store or get_fee_store()
    return store.save(snapshot)


def copy_store(source, target) -> dict:
    return target.save(source.load())


def _clear(names, store=None) -> dict:
    store = store or get_fee_store()
    counts = store.clear(names)
    logger.info(f"Cleared fee data in the {store.name} store: {counts}")
    return counts


def clear_students(store=None) -> dict:
    return _clear(['students'], store)


def clear_payments(store=None) -> dict:
    return _clear(['payments'], store)


def clear_all_data(store=None) -> dict:
    return _clear(['payments', 'students', 'collection_entries', 'fee_settings'], store)
