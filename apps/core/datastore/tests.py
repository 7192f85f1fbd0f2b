import json
import shutil
import tempfile
from decimal import Decimal
from io import StringIO
from pathlib import Path
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.db.models.query import QuerySet
from django.test import TestCase, override_settings
from django.urls import reverse

from apps.core.fees.models import FeeSetting, Payment
from apps.core.fees.services import record_payment
from apps.core.students.models import Student
from apps.operations.collections.models import CollectionEntry

from .services import clear_all_data, clear_students, copy_store, export_backup, restore_backup
from .stores import DatabaseFeeStore, JsonFileFeeStore, PartialClearError, get_fee_store

TEST_STORE_DIR = tempfile.mkdtemp(prefix='feedesk_store_tests_')


def make_student(admission_number='ADM-1', **extra):
    fields = {
        'admission_number': admission_number,
        'name': f'Student {admission_number}',
        'mobile': '9000000000',
        'school_class': '5',
        'division': 'A',
        'bus_stop': 'Main Gate',
    }
    fields.update(extra)
    return Student.objects.create(**fields)


class FeeDataMixin:
    def seed_fee_data(self):
        self.clerk = get_user_model().objects.create_user(username='clerk1', password='pass12345', role='clerk')
        self.student = make_student()
        self.other = make_student('ADM-2', school_class='12', division='B', bus_stop='Market Square')
        FeeSetting.objects.create(config_type=FeeSetting.TYPE_BUS_STOP, config_key='Main Gate', config_value=800)
        self.payment = record_payment(student=self.student, added_by=self.clerk, development_fee=1500, bus_fee=400)
        CollectionEntry.objects.create(
            kind=CollectionEntry.KIND_TEACHER_TO_SECTION,
            source='5-A',
            target='up',
            section='up',
            amount=Decimal('1900'),
            recorded_by=self.clerk,
        )


@override_settings(FEEDESK_LOCAL_STORE_PATH=Path(TEST_STORE_DIR) / 'store.json')
class StoreTests(FeeDataMixin, TestCase):
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_STORE_DIR, ignore_errors=True)

    def setUp(self):
        self.seed_fee_data()
        self.json_store = JsonFileFeeStore(Path(TEST_STORE_DIR) / f'{self._testMethodName}.json')

    def test_missing_json_file_loads_empty(self):
        snapshot = self.json_store.load()
        self.assertEqual(snapshot.counts(), {
            'students': 0,
            'fee_settings': 0,
            'payments': 0,
            'collection_entries': 0,
        })

    def test_database_to_json_and_back(self):
        counts = copy_store(DatabaseFeeStore(), self.json_store)
        self.assertEqual(counts['students'], 2)
        self.assertTrue(self.json_store.path.exists())

        clear_all_data(DatabaseFeeStore())
        self.assertFalse(Student.objects.exists())

        copy_store(self.json_store, DatabaseFeeStore())

        payment = Payment.objects.get()
        self.assertEqual(payment.pk, self.payment.pk)
        self.assertEqual(payment.student_id, self.student.pk)
        self.assertEqual(payment.total_amount, Decimal('1900.00'))
        self.assertEqual(Student.objects.count(), 2)
        self.assertEqual(CollectionEntry.objects.get().recorded_by, self.clerk)
        self.assertEqual(FeeSetting.objects.get().config_value, Decimal('800.00'))

    def test_restore_detaches_missing_student_and_user(self):
        snapshot = DatabaseFeeStore().load()
        snapshot.students = [student for student in snapshot.students if student.pk != self.student.pk]
        for entry in snapshot.collection_entries:
            entry.recorded_by_id = 9999

        DatabaseFeeStore().save(snapshot)

        payment = Payment.objects.get()
        self.assertIsNone(payment.student_id)
        self.assertEqual(payment.admission_number, 'ADM-1')
        self.assertIsNone(CollectionEntry.objects.get().recorded_by_id)

    def test_restored_totals_follow_the_fee_parts(self):
        snapshot = DatabaseFeeStore().load()
        snapshot.payments[0].total_amount = Decimal('1')

        DatabaseFeeStore().save(snapshot)

        self.assertEqual(Payment.objects.get().total_amount, Decimal('1900.00'))

    def test_store_selection(self):
        self.assertIsInstance(get_fee_store('database'), DatabaseFeeStore)
        json_store = get_fee_store('json')
        self.assertIsInstance(json_store, JsonFileFeeStore)
        self.assertEqual(json_store.path, Path(TEST_STORE_DIR) / 'store.json')
        with self.assertRaises(ImproperlyConfigured):
            get_fee_store('spreadsheet')

    def test_broken_backup_is_rejected(self):
        with self.assertRaises(ValidationError):
            restore_backup('{"not": "a list"')
        with self.assertRaises(ValidationError):
            restore_backup('[]')
        self.assertEqual(Student.objects.count(), 2)

    def test_backup_with_repeated_admission_number_is_rejected(self):
        records = json.loads(export_backup())
        student_records = [record for record in records if record['model'] == 'students.student']
        student_records[1]['fields']['admission_number'] = student_records[0]['fields']['admission_number']

        with self.assertRaises(ValidationError):
            restore_backup(json.dumps(records))
        self.assertEqual(Student.objects.count(), 2)

    def test_json_store_clear_keeps_payments_of_removed_students(self):
        copy_store(DatabaseFeeStore(), self.json_store)

        counts = clear_students(self.json_store)

        self.assertEqual(counts, {'students': 2})
        snapshot = self.json_store.load()
        self.assertEqual(snapshot.students, [])
        self.assertIsNone(snapshot.payments[0].student_id)
        self.assertEqual(snapshot.payments[0].admission_number, 'ADM-1')
        self.assertEqual(Student.objects.count(), 2)

    @override_settings(FEEDESK_STORE_BACKEND='json')
    def test_clear_page_empties_the_json_store_only(self):
        json_store = get_fee_store()
        copy_store(DatabaseFeeStore(), json_store)
        get_user_model().objects.create_user(username='admin1', password='pass12345', role='admin')
        self.client.login(username='admin1', password='pass12345')

        response = self.client.post(reverse('clear_data'), {'scope': 'all', 'confirm_text': 'DELETE'})

        self.assertRedirects(response, reverse('data_management'))
        self.assertEqual(json_store.load().counts(), {
            'students': 0,
            'fee_settings': 0,
            'payments': 0,
            'collection_entries': 0,
        })
        self.assertEqual(Student.objects.count(), 2)
        self.assertTrue(Payment.objects.exists())


class ClearDataTests(FeeDataMixin, TestCase):
    def setUp(self):
        self.seed_fee_data()

    def test_clear_all_removes_every_table(self):
        counts = clear_all_data(DatabaseFeeStore())

        self.assertEqual(counts['payments'], 1)
        self.assertEqual(counts['students'], 2)
        self.assertFalse(CollectionEntry.objects.exists())
        self.assertFalse(FeeSetting.objects.exists())
        self.assertTrue(get_user_model().objects.filter(username='clerk1').exists())

    def test_failed_delete_keeps_earlier_tables_cleared(self):
        original_delete = QuerySet.delete

        def delete(queryset):
            if queryset.model is Student:
                raise DatabaseError('database is locked')
            return original_delete(queryset)

        with mock.patch.object(QuerySet, 'delete', autospec=True, side_effect=delete):
            with self.assertLogs('apps.core.datastore.stores', level='ERROR'):
                with self.assertRaises(PartialClearError) as raised:
                    clear_all_data(DatabaseFeeStore())

        self.assertEqual(raised.exception.cleared, ['payments'])
        self.assertEqual(raised.exception.failed_table, 'students')
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(Student.objects.count(), 2)


@override_settings(FEEDESK_STORE_BACKEND='database')
class DataManagementViewTests(FeeDataMixin, TestCase):
    def setUp(self):
        self.seed_fee_data()
        get_user_model().objects.create_user(username='admin1', password='pass12345', role='admin')

    def test_only_admin_opens_data_management(self):
        self.client.login(username='clerk1', password='pass12345')
        self.assertEqual(self.client.get(reverse('data_management')).status_code, 403)

        self.client.login(username='admin1', password='pass12345')
        response = self.client.get(reverse('data_management'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['counts']['students'], 2)

    def test_backup_download_is_json(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.get(reverse('backup_download'))

        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertIn('attachment; filename="feedesk_backup_', response['Content-Disposition'])
        models = {record['model'] for record in json.loads(response.content)}
        self.assertEqual(
            models,
            {'students.student', 'fees.feesetting', 'fees.payment', 'fee_collections.collectionentry'},
        )

    def test_restore_replaces_data(self):
        backup = export_backup()
        make_student('ADM-3')
        self.client.login(username='admin1', password='pass12345')

        response = self.client.post(reverse('backup_restore'), {
            'backup_file': SimpleUploadedFile('backup.json', backup.encode(), content_type='application/json'),
            'confirm': 'on',
        })

        self.assertRedirects(response, reverse('data_management'))
        self.assertEqual(
            sorted(Student.objects.values_list('admission_number', flat=True)),
            ['ADM-1', 'ADM-2'],
        )

    def test_restore_reports_unreadable_file(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('backup_restore'), {
            'backup_file': SimpleUploadedFile('backup.json', b'not json', content_type='application/json'),
            'confirm': 'on',
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Backup file could not be read')
        self.assertEqual(Student.objects.count(), 2)

    def test_clear_payments_needs_confirmation(self):
        self.client.login(username='admin1', password='pass12345')

        response = self.client.post(reverse('clear_data'), {'scope': 'payments', 'confirm_text': 'yes'})
        self.assertContains(response, 'Type DELETE to confirm.')
        self.assertTrue(Payment.objects.exists())

        response = self.client.post(reverse('clear_data'), {'scope': 'payments', 'confirm_text': 'DELETE'})
        self.assertRedirects(response, reverse('data_management'))
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(Student.objects.count(), 2)

    def test_send_reports_from_page(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('send_reports_now'), {'recipients': 'office@example.com'})

        self.assertRedirects(response, reverse('data_management'))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['office@example.com'])

    @override_settings(FEEDESK_REPORT_RECIPIENTS=[])
    def test_send_reports_without_recipients(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('send_reports_now'), {'recipients': ''})

        self.assertContains(response, 'No report recipients are configured.')
        self.assertEqual(len(mail.outbox), 0)


@override_settings(PASSWORD_HASHERS=['django.contrib.auth.hashers.MD5PasswordHasher'])
class CommandTests(FeeDataMixin, TestCase):
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEST_STORE_DIR, ignore_errors=True)

    def test_seed_creates_default_accounts_once(self):
        out = StringIO()
        call_command('seed_feedesk', password='Feedesk!2026', stdout=out)
        call_command('seed_feedesk', password='Feedesk!2026', stdout=StringIO())

        User = get_user_model()
        self.assertEqual(User.objects.get(username='admin').role, 'admin')
        self.assertEqual(User.objects.get(username='hss').section, 'hss')
        self.assertEqual(User.objects.get(username='sarvodaya').section, '')
        self.assertEqual(User.objects.get(username='class12e').class_key, '12-E')
        self.assertEqual(User.objects.filter(role='teacher').count(), 60)
        self.assertTrue(User.objects.get(username='clerk').check_password('Feedesk!2026'))
        self.assertTrue(FeeSetting.objects.filter(config_type=FeeSetting.TYPE_BUS_STOP, config_key='Market Square').exists())
        self.assertIn('Seeding complete', out.getvalue())

    def test_seed_demo_students(self):
        call_command('seed_feedesk', password='Feedesk!2026', students=5, skip_teachers=True, stdout=StringIO())

        self.assertEqual(Student.objects.count(), 5)
        self.assertFalse(get_user_model().objects.filter(role='teacher').exists())

    def test_send_fee_reports_attaches_both_csvs(self):
        self.seed_fee_data()
        call_command('send_fee_reports', to=['office@example.com'], days=7, stdout=StringIO())

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        names = [attachment[0] for attachment in message.attachments]
        self.assertTrue(names[0].startswith('receipt_wise_report_'))
        self.assertTrue(names[1].startswith('class_monthly_collection_'))
        self.assertIn('Receipt No', message.attachments[0][1])
        self.assertIn('Student ADM-1', message.attachments[1][1])
        self.assertIn('Total payments: 1', message.body)

    @override_settings(FEEDESK_REPORT_RECIPIENTS=[])
    def test_send_fee_reports_needs_recipients(self):
        with self.assertRaises(CommandError):
            call_command('send_fee_reports', stdout=StringIO())

    @override_settings(FEEDESK_LOCAL_STORE_PATH=Path(TEST_STORE_DIR) / 'command.json')
    def test_copy_fee_data_writes_json_store(self):
        self.seed_fee_data()
        call_command('copy_fee_data', source='database', target='json', stdout=StringIO())

        snapshot = get_fee_store('json').load()
        self.assertEqual(snapshot.counts()['payments'], 1)

        with self.assertRaises(CommandError):
            call_command('copy_fee_data', source='json', target='json', stdout=StringIO())
