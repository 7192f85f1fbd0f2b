import csv
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from apps.core.students.models import Student

from .calculations import (
    FeeConfiguration,
    aggregate_payments,
    balance,
    development_fee_key,
    resolve_required_fees,
    student_balance,
)
from .models import FeeSetting, Payment
from .services import (
    PAYMENT_EXPORT_HEADERS,
    load_fee_configuration,
    record_payment,
    remove_bus_stop,
    student_fee_status,
    update_fee_configuration,
    update_payment,
)

FEE_CONFIG = FeeConfiguration(
    development_fees={'5': 7000, '12-B': 13000},
    bus_stops={'Market Square': 900, 'Main Gate': 800},
)


def make_student(**overrides):
    fields = {
        'pk': 1,
        'school_class': '5',
        'division': 'A',
        'bus_stop': 'Main Gate',
        'bus_fee_discount': Decimal('0'),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_payment(development_fee=0, bus_fee=0, special_fee=0, student_id=1):
    return SimpleNamespace(
        student_id=student_id,
        development_fee=Decimal(development_fee),
        bus_fee=Decimal(bus_fee),
        special_fee=Decimal(special_fee),
    )


class FeeCalculationTests(SimpleTestCase):
    def test_higher_secondary_fees_are_keyed_by_division(self):
        self.assertEqual(development_fee_key('12', 'B'), '12-B')
        self.assertEqual(development_fee_key('11', 'A'), '11-A')
        self.assertEqual(development_fee_key('5', 'A'), '5')

    def test_missing_configuration_resolves_to_zero(self):
        required = resolve_required_fees(make_student(school_class='9', bus_stop='Nowhere'), FEE_CONFIG)
        self.assertEqual(required['development_fee'], Decimal('0.00'))
        self.assertEqual(required['bus_fee'], Decimal('0.00'))

    def test_discount_never_makes_bus_fee_negative(self):
        required = resolve_required_fees(make_student(bus_fee_discount=Decimal('1200')), FEE_CONFIG)
        self.assertEqual(required['original_bus_fee'], Decimal('800.00'))
        self.assertEqual(required['bus_fee'], Decimal('0.00'))

    def test_balance_is_clamped_at_zero(self):
        self.assertEqual(balance(1000, 400), Decimal('600.00'))
        self.assertEqual(balance(1000, 1500), Decimal('0.00'))

    def test_aggregate_of_nothing_is_zero(self):
        totals = aggregate_payments([])
        self.assertEqual(totals['total'], Decimal('0.00'))
        self.assertEqual(totals['count'], 0)

    def test_aggregate_sums_each_category(self):
        totals = aggregate_payments([
            make_payment(development_fee=1000, special_fee=50),
            make_payment(bus_fee=300),
        ])
        self.assertEqual(totals['development_fee'], Decimal('1000.00'))
        self.assertEqual(totals['bus_fee'], Decimal('300.00'))
        self.assertEqual(totals['special_fee'], Decimal('50.00'))
        self.assertEqual(totals['total'], Decimal('1350.00'))
        self.assertEqual(totals['count'], 2)

    def test_class_twelve_market_square_balance(self):
        student = make_student(
            school_class='12',
            division='B',
            bus_stop='Market Square',
            bus_fee_discount=Decimal('100'),
        )
        status = student_balance(student, [make_payment(development_fee=5000, bus_fee=400)], FEE_CONFIG)

        self.assertEqual(status['development_fee']['total'], Decimal('13000.00'))
        self.assertEqual(status['development_fee']['remaining'], Decimal('8000.00'))
        self.assertEqual(status['bus_fee']['original'], Decimal('900.00'))
        self.assertEqual(status['bus_fee']['total'], Decimal('800.00'))
        self.assertEqual(status['bus_fee']['remaining'], Decimal('400.00'))
        self.assertEqual(status['grand_total']['remaining'], Decimal('8400.00'))

    def test_special_fees_are_never_owed(self):
        status = student_balance(make_student(), [make_payment(special_fee=250)], FEE_CONFIG)
        self.assertEqual(status['special_fee']['paid'], Decimal('250.00'))
        self.assertEqual(status['grand_total']['paid'], Decimal('0.00'))
        self.assertEqual(status['grand_total']['remaining'], Decimal('7800.00'))


class FeeBaseTestCase(TestCase):
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
        self.student = Student.objects.create(
            admission_number='ADM-001',
            name='Arjun',
            mobile='9876543210',
            school_class='5',
            division='A',
            bus_stop='Main Gate',
        )


@override_settings(
    FEEDESK_DEFAULT_DEVELOPMENT_FEES={'5': 7000},
    FEEDESK_DEFAULT_BUS_STOPS={'Main Gate': 800, 'Bus Stand': 700},
)
class FeeServiceTests(FeeBaseTestCase):
    def test_defaults_are_used_until_settings_are_stored(self):
        fee_config = load_fee_configuration()
        self.assertEqual(fee_config.development_fee_for('5'), Decimal('7000.00'))
        self.assertEqual(fee_config.bus_fee_for('Bus Stand'), Decimal('700.00'))

    def test_first_edit_keeps_the_other_defaults(self):
        fee_config = update_fee_configuration(bus_stops={'College Road': 950})
        self.assertEqual(fee_config.bus_fee_for('College Road'), Decimal('950.00'))
        self.assertEqual(fee_config.bus_fee_for('Main Gate'), Decimal('800.00'))
        self.assertEqual(FeeSetting.objects.filter(config_type=FeeSetting.TYPE_BUS_STOP).count(), 3)

    def test_remove_bus_stop(self):
        self.assertEqual(remove_bus_stop('Bus Stand'), 1)
        self.assertNotIn('Bus Stand', load_fee_configuration().bus_stops)

    def test_negative_fee_is_rejected(self):
        with self.assertRaises(ValidationError):
            update_fee_configuration(development_fees={'5': -1})

    def test_record_payment_snapshots_student_and_total(self):
        payment = record_payment(
            student=self.student,
            added_by=self.clerk,
            development_fee='1000',
            bus_fee='400',
            special_fee='50',
            special_fee_type='Exam',
        )
        self.assertEqual(payment.total_amount, Decimal('1450.00'))
        self.assertEqual(payment.student_name, 'Arjun')
        self.assertEqual(payment.class_key, '5-A')
        self.assertEqual(payment.added_by, 'clerk1')
        self.assertTrue(payment.receipt_number.startswith('RCP-'))

    def test_zero_payment_is_rejected(self):
        with self.assertRaises(ValidationError):
            record_payment(student=self.student, added_by=self.clerk)

    def test_special_fee_needs_a_type(self):
        with self.assertRaises(ValidationError):
            record_payment(student=self.student, added_by=self.clerk, special_fee=100)

    def test_update_payment_recomputes_total(self):
        payment = record_payment(student=self.student, added_by=self.clerk, development_fee=1000)
        update_payment(payment, bus_fee=Decimal('300'))
        payment.refresh_from_db()
        self.assertEqual(payment.total_amount, Decimal('1300.00'))

    def test_payment_date_is_not_editable(self):
        payment = record_payment(student=self.student, added_by=self.clerk, development_fee=1000)
        with self.assertRaises(ValidationError):
            update_payment(payment, payment_date=None)

    def test_student_fee_status_lists_latest_payment_first(self):
        first = record_payment(student=self.student, added_by=self.clerk, development_fee=1000)
        second = record_payment(student=self.student, added_by=self.clerk, bus_fee=800)
        Payment.objects.filter(pk=first.pk).update(payment_date=second.payment_date.replace(year=2020))

        status = student_fee_status(self.student)

        self.assertEqual([payment.pk for payment in status['payments']], [second.pk, first.pk])
        self.assertEqual(status['development_fee']['remaining'], Decimal('6000.00'))
        self.assertEqual(status['bus_fee']['remaining'], Decimal('0.00'))


class FeeViewTests(FeeBaseTestCase):
    def test_clerk_collects_payment(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.post(reverse('payment_collect'), {
            'student': self.student.pk,
            'development_fee': '1500',
            'bus_fee': '0',
            'special_fee': '0',
        })
        payment = Payment.objects.get()
        self.assertRedirects(response, reverse('payment_receipt', kwargs={'pk': payment.pk}))
        self.assertEqual(payment.total_amount, Decimal('1500.00'))

    def test_collect_form_requires_an_amount(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.post(reverse('payment_collect'), {
            'student': self.student.pk,
            'development_fee': '0',
            'bus_fee': '0',
            'special_fee': '0',
        })
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Payment.objects.exists())

    def test_teacher_cannot_collect_payments(self):
        self.client.login(username='teacher5a', password='pass12345')
        self.assertEqual(self.client.get(reverse('payment_collect')).status_code, 403)

    def test_clerk_cannot_delete_payment(self):
        payment = record_payment(student=self.student, added_by=self.clerk, development_fee=100)
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.post(reverse('payment_delete', kwargs={'pk': payment.pk}))
        self.assertEqual(response.status_code, 403)
        self.assertTrue(Payment.objects.filter(pk=payment.pk).exists())

    def test_admin_deletes_payment(self):
        payment = record_payment(student=self.student, added_by=self.clerk, development_fee=100)
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('payment_delete', kwargs={'pk': payment.pk}))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(Payment.objects.exists())

    def test_empty_payment_csv_is_header_only(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('payment_list'), {'export': 'csv'})
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertEqual(len(response.content.decode().strip().splitlines()), 1)

    def test_payment_csv_quotes_commas_and_quotes(self):
        record_payment(
            student=self.student,
            added_by=self.clerk,
            development_fee=100,
            special_fee=50,
            special_fee_type='Trip, "Annual"',
        )
        self.client.login(username='clerk1', password='pass12345')

        response = self.client.get(reverse('payment_list'), {'export': 'csv'})

        rows = list(csv.reader(StringIO(response.content.decode())))
        self.assertEqual(rows[0], PAYMENT_EXPORT_HEADERS)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][PAYMENT_EXPORT_HEADERS.index('Special Fee Type')], 'Trip, "Annual"')
        self.assertEqual(rows[1][PAYMENT_EXPORT_HEADERS.index('Total')], '150.00')

    def test_admin_saves_division_fee(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('fee_settings'), {
            'config_type': FeeSetting.TYPE_DEVELOPMENT_FEE,
            'config_key': '11-C',
            'config_value': '12500',
        })
        self.assertEqual(response.status_code, 302)
        self.assertEqual(load_fee_configuration().development_fee_for('11-C'), Decimal('12500.00'))

    def test_class_eleven_fee_needs_division(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('fee_settings'), {
            'config_type': FeeSetting.TYPE_DEVELOPMENT_FEE,
            'config_key': '11',
            'config_value': '12500',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'set per division')
