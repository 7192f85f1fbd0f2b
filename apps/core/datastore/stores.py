"""
Fee data stores.

Every store exposes the same operations over a ``FeeSnapshot``:
``load()`` returns everything the store holds, ``save(snapshot)`` replaces
it and ``clear(names)`` empties the named buckets. The database store is the
normal system of record; the JSON file store is the offline fallback and the
format of downloadable backups.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from django.conf import settings
from django.core import serializers
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.core.management.color import no_style
from django.core.serializers.base import DeserializationError
from django.db import DatabaseError, connection, models, transaction

from apps.core.fees.calculations import payment_total
from apps.core.fees.models import FeeSetting, Payment
from apps.core.students.models import Student
from apps.core.users.models import User
from apps.operations.collections.models import CollectionEntry

logger = logging.getLogger(__name__)

# Parents before children, so foreign keys resolve on insert.
SNAPSHOT_MODELS = (
    ('students', Student),
    ('fee_settings', FeeSetting),
    ('payments', Payment),
    ('collection_entries', CollectionEntry),
)


@dataclass
class FeeSnapshot:
    students: list = field(default_factory=list)
    fee_settings: list = field(default_factory=list)
    payments: list = field(default_factory=list)
    collection_entries: list = field(default_factory=list)

    def objects(self):
        for name, _model in SNAPSHOT_MODELS:
            yield from getattr(self, name)

    def counts(self) -> dict:
        return {name: len(getattr(self, name)) for name, _model in SNAPSHOT_MODELS}


def snapshot_to_json(snapshot: FeeSnapshot) -> str:
    return serializers.serialize('json', list(snapshot.objects()), indent=2)


def snapshot_from_json(content) -> FeeSnapshot:
    """Parse a JSON backup. Unknown models are ignored, broken files raise ValidationError."""
    buckets = {model: name for name, model in SNAPSHOT_MODELS}
    snapshot = FeeSnapshot()
    try:
        for deserialized in serializers.deserialize('json', content, ignorenonexistent=True):
            name = buckets.get(type(deserialized.object))
            if name:
                getattr(snapshot, name).append(deserialized.object)
    except DeserializationError as exc:
        raise ValidationError(f"Backup file could not be read: {exc}") from exc
    return snapshot


class PartialClearError(Exception):
    """Some tables were cleared before a later delete failed."""

    def __init__(self, cleared, failed_table, error):
        self.cleared = cleared
        self.failed_table = failed_table
        self.error = error
        super().__init__(f"Clearing stopped at {failed_table} after clearing {', '.join(cleared) or 'nothing'}.")


def _reset_sequences():
    statements = connection.ops.sequence_reset_sql(no_style(), [model for _name, model in SNAPSHOT_MODELS])
    if statements:
        with connection.cursor() as cursor:
            for statement in statements:
                cursor.execute(statement)


class DatabaseFeeStore:
    name = 'database'

    def load(self) -> FeeSnapshot:
        return FeeSnapshot(
            students=list(Student.objects.order_by('pk')),
            fee_settings=list(FeeSetting.objects.order_by('pk')),
            payments=list(Payment.objects.order_by('pk')),
            collection_entries=list(CollectionEntry.objects.order_by('pk')),
        )

    @transaction.atomic
    def save(self, snapshot: FeeSnapshot) -> dict:
        for _name, model in reversed(SNAPSHOT_MODELS):
            model.objects.all().delete()

        student_ids = {student.pk for student in snapshot.students}
        user_ids = set(User.objects.values_list('pk', flat=True))

        for payment in snapshot.payments:
            payment.total_amount = payment_total(payment.development_fee, payment.bus_fee, payment.special_fee)
            if payment.student_id not in student_ids:
                payment.student_id = None
        for entry in snapshot.collection_entries:
            if entry.recorded_by_id not in user_ids:
                entry.recorded_by_id = None

        for obj in snapshot.objects():
            # Raw saves keep primary keys and timestamps as stored.
            models.Model.save_base(obj, raw=True, force_insert=True)
        _reset_sequences()

        counts = snapshot.counts()
        logger.info(f"Database store replaced: {counts}")
        return counts

    def clear(self, names) -> dict:
        # Each table is deleted on its own; earlier deletes stay if a later one fails.
        tables = dict(SNAPSHOT_MODELS)
        cleared = []
        counts = {}
        for name in names:
            try:
                counts[name], _ = tables[name].objects.all().delete()
            except DatabaseError as exc:
                logger.exception(f"Clearing {name} failed after {cleared}")
                raise PartialClearError(cleared, name, exc) from exc
            cleared.append(name)
        return counts


class JsonFileFeeStore:
    name = 'json'

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> FeeSnapshot:
        if not self.path.exists():
            return FeeSnapshot()
        return snapshot_from_json(self.path.read_text(encoding='utf-8'))

    def save(self, snapshot: FeeSnapshot) -> dict:
        content = snapshot_to_json(snapshot)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        handle, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix='.json')
        try:
            with os.fdopen(handle, 'w', encoding='utf-8') as temp_file:
                temp_file.write(content)
            os.replace(temp_path, self.path)
        except OSError:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

        counts = snapshot.counts()
        logger.info(f"JSON store {self.path} replaced: {counts}")
        return counts

    def clear(self, names) -> dict:
        """Empty the named buckets in one file write, so there is no partial clear."""
        snapshot = self.load()
        counts = {}
        for name in names:
            counts[name] = len(getattr(snapshot, name))
            setattr(snapshot, name, [])
        if 'students' in names:
            # Payments outlive their student, as with the database foreign key.
            for payment in snapshot.payments:
                payment.student_id = None
        self.save(snapshot)
        return counts


def get_fee_store(backend=None):
    backend = backend or settings.FEEDESK_STORE_BACKEND
    if backend == DatabaseFeeStore.name:
        return DatabaseFeeStore()
    if backend == JsonFileFeeStore.name:
        return JsonFileFeeStore(settings.FEEDESK_LOCAL_STORE_PATH)
    raise ImproperlyConfigured(f"Unknown fee store backend: {backend!r}")
