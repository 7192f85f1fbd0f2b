from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase
from django.urls import reverse

from apps.core.fees.services import record_payment
from apps.core.students.models import Student

from .models import CollectionEntry
from .services import (
    STATUS_BALANCED,
    STATUS_EXCESS,
    STATUS_PENDING,
    can_record_clerk_handover,
    readable_sections,
    reconcile,
    record_collection_entry,
    section_collection_summary,
    section_to_clerk_ledger,
    teacher_to_section_ledger,
)


class CollectionTestMixin:
    def setUp(self):
        User = get_user_model()
        self.admin = User.objects.create_user(username='admin1', password='pass12345', role='admin')
        self.clerk = User.objects.create_user(username='clerk1', password='pass12345', role='clerk')
        self.teacher = User.objects.create_user(
            username='teacher5a',
            password='pass12345',
            role='teacher',
            school_class='5',
            division='A',
        )
        self.up_head = User.objects.create_user(
            username='uphead',
            password='pass12345',
            role='sarvodaya',
            section='up',
        )
        self.hs_head = User.objects.create_user(
            username='hshead',
            password='pass12345',
            role='sarvodaya',
            section='hs',
        )
        self.all_sections = User.objects.create_user(
            username='sarvodaya',
            password='pass12345',
            role='sarvodaya',
        )
        self.student = Student.objects.create(
            admission_number='ADM-501',
            name='Anu',
            mobile='9876543210',
            school_class='5',
            division='A',
            bus_stop='Main Gate',
        )

    def _pay(self, amount):
        return record_payment(student=self.student, added_by=self.clerk, development_fee=amount)

    def _teacher_entry(self, amount, source='5-A'):
        return record_collection_entry(
            user=self.up_head,
            kind=CollectionEntry.KIND_TEACHER_TO_SECTION,
            source=source,
            amount=amount,
        )


class ReconcileTests(TestCase):
    def test_positive_difference_is_pending(self):
        row = reconcile(1000, 600)
        self.assertEqual(row['difference'], Decimal('400.00'))
        self.assertEqual(row['status'], STATUS_PENDING)

    def test_negative_difference_is_kept_and_marked_excess(self):
        row = reconcile(1000, 1200)
        self.assertEqual(row['difference'], Decimal('-200.00'))
        self.assertEqual(row['status'], STATUS_EXCESS)

    def test_equal_amounts_are_balanced(self):
        self.assertEqual(reconcile('750.50', Decimal('750.5'))['status'], STATUS_BALANCED)


class CollectionLedgerTests(CollectionTestMixin, TestCase):
    def test_teacher_ledger_compares_payments_with_handovers(self):
        self._pay(1000)
        self._teacher_entry(1200)

        rows = teacher_to_section_ledger(
            list(self.student.payments.all()),
            list(CollectionEntry.objects.all()),
            'up',
        )

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['key'], '5-A')
        self.assertEqual(rows[0]['expected'], Decimal('1000.00'))
        self.assertEqual(rows[0]['recorded'], Decimal('1200.00'))
        self.assertEqual(rows[0]['difference'], Decimal('-200.00'))
        self.assertEqual(rows[0]['status'], STATUS_EXCESS)

    def test_teacher_ledger_ignores_other_sections(self):
        self._pay(1000)
        self.assertEqual(teacher_to_section_ledger(list(self.student.payments.all()), [], 'hs'), [])

    def test_clerk_ledger_uses_teacher_handovers_as_expected(self):
        self._teacher_entry(900)
        record_collection_entry(
            user=self.clerk,
            kind=CollectionEntry.KIND_SECTION_TO_CLERK,
            source='up',
            amount=500,
        )

        rows = {row['section']['code']: row for row in section_to_clerk_ledger(list(CollectionEntry.objects.all()))}

        self.assertEqual(rows['up']['expected'], Decimal('900.00'))
        self.assertEqual(rows['up']['recorded'], Decimal('500.00'))
        self.assertEqual(rows['up']['status'], STATUS_PENDING)
        self.assertEqual(rows['lp']['status'], STATUS_BALANCED)

    def test_section_collected_summary_splits_balance_and_excess(self):
        self._pay(1000)
        record_collection_entry(
            user=self.up_head,
            kind=CollectionEntry.KIND_SECTION_COLLECTED,
            source='up',
            amount=1300,
        )

        summary = section_collection_summary(
            list(self.student.payments.all()),
            list(CollectionEntry.objects.all()),
            'up',
        )

        self.assertEqual(summary['total_expected'], Decimal('1000.00'))
        self.assertEqual(summary['total_collected'], Decimal('1300.00'))
        self.assertEqual(summary['balance'], Decimal('0.00'))
        self.assertEqual(summary['excess'], Decimal('300.00'))


class CollectionCapabilityTests(CollectionTestMixin, TestCase):
    def test_section_head_records_only_for_own_section(self):
        entry = self._teacher_entry(100)
        self.assertEqual(entry.target, 'up')
        self.assertEqual(entry.section, 'up')

        with self.assertRaises(PermissionDenied):
            record_collection_entry(
                user=self.hs_head,
                kind=CollectionEntry.KIND_TEACHER_TO_SECTION,
                source='5-B',
                amount=100,
            )

    def test_admin_cannot_record_teacher_handover(self):
        with self.assertRaises(PermissionDenied):
            record_collection_entry(
                user=self.admin,
                kind=CollectionEntry.KIND_TEACHER_TO_SECTION,
                source='5-A',
                amount=100,
            )

    def test_teacher_key_must_belong_to_a_section(self):
        with self.assertRaises(ValidationError):
            self._teacher_entry(100, source='13-A')

    def test_zero_amount_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._teacher_entry(0)

    def test_clerk_handover_capabilities(self):
        self.assertTrue(can_record_clerk_handover(self.admin))
        self.assertTrue(can_record_clerk_handover(self.clerk))
        self.assertTrue(can_record_clerk_handover(self.all_sections))
        self.assertFalse(can_record_clerk_handover(self.up_head))
        self.assertFalse(can_record_clerk_handover(self.teacher))

    def test_readable_sections(self):
        self.assertEqual(readable_sections(self.up_head), ('up',))
        self.assertEqual(len(readable_sections(self.clerk)), 4)
        self.assertEqual(len(readable_sections(self.all_sections)), 4)
        self.assertEqual(readable_sections(self.teacher), ())


class CollectionViewTests(CollectionTestMixin, TestCase):
    def test_teacher_cannot_open_ledgers(self):
        self.client.login(username='teacher5a', password='pass12345')
        response = self.client.get(reverse('collection_overview'))
        self.assertEqual(response.status_code, 403)

    def test_section_head_sees_own_section(self):
        self._pay(1000)
        self.client.login(username='uphead', password='pass12345')
        response = self.client.get(reverse('collection_overview'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'UP (Upper Primary)')
        self.assertNotContains(response, 'HS (High School)')

    def test_section_head_records_teacher_handover(self):
        self.client.login(username='uphead', password='pass12345')
        response = self.client.post(
            reverse('collection_entry_create', kwargs={'kind': CollectionEntry.KIND_TEACHER_TO_SECTION}),
            {
                'source': '6-B',
                'fee_category': CollectionEntry.CATEGORY_BUS_FEE,
                'amount': '450.00',
                'remarks': 'Week 1',
            },
        )
        self.assertEqual(response.status_code, 302)
        entry = CollectionEntry.objects.get()
        self.assertEqual(entry.source, '6-B')
        self.assertEqual(entry.recorded_by, self.up_head)

    def test_clerk_cannot_open_teacher_handover_form(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(
            reverse('collection_entry_create', kwargs={'kind': CollectionEntry.KIND_TEACHER_TO_SECTION})
        )
        self.assertEqual(response.status_code, 403)

    def test_other_section_head_cannot_delete_entry(self):
        entry = self._teacher_entry(300)
        self.client.login(username='hshead', password='pass12345')
        response = self.client.post(reverse('collection_entry_delete', kwargs={'pk': entry.pk}))
        self.assertEqual(response.status_code, 403)
        self.assertTrue(CollectionEntry.objects.filter(pk=entry.pk).exists())

    def test_overview_csv_export(self):
        self._pay(1000)
        self._teacher_entry(1000)
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('collection_overview'), {'export': 'csv'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('5-A,1000.00,1000.00,0.00,balanced', response.content.decode())
