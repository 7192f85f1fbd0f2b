from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from apps.core.fees.calculations import FeeConfiguration, student_balance
from apps.core.fees.services import record_payment
from apps.core.students.models import Student
from apps.core.utils.classes import section_for_class

from .services import (
    bus_stop_summary,
    class_division_summary,
    class_monthly_matrix,
    class_report,
    filter_payments,
    month_detail,
    month_key,
    monthly_summary,
    section_summary,
    unpaid_students,
)

FEE_CONFIG = FeeConfiguration(
    development_fees={'5': 7000, '9': 9000},
    bus_stops={'Main Gate': 800, 'Bus Stand': 700},
)


def on(year, month, day, hour=10):
    return timezone.make_aware(datetime(year, month, day, hour, 0))


def student(pk, school_class='5', division='A', bus_stop='Main Gate', **extra):
    fields = {
        'pk': pk,
        'admission_number': f"ADM-{pk:03d}",
        'name': f"Student {pk}",
        'school_class': school_class,
        'division': division,
        'bus_stop': bus_stop,
        'bus_number': '',
        'trip_number': '',
        'bus_fee_discount': Decimal('0'),
    }
    fields.update(extra)
    return SimpleNamespace(**fields)


def payment(student_id, paid_on, school_class='5', division='A', development_fee=0, bus_fee=0, special_fee=0):
    development_fee = Decimal(development_fee)
    bus_fee = Decimal(bus_fee)
    special_fee = Decimal(special_fee)
    return SimpleNamespace(
        student_id=student_id,
        school_class=school_class,
        division=division,
        development_fee=development_fee,
        bus_fee=bus_fee,
        special_fee=special_fee,
        total_amount=development_fee + bus_fee + special_fee,
        payment_date=paid_on,
    )


class SectionMappingTests(SimpleTestCase):
    def test_every_class_has_one_section(self):
        expected = {
            'lp': [1, 2, 3, 4],
            'up': [5, 6, 7],
            'hs': [8, 9, 10],
            'hss': [11, 12],
        }
        mapped = {}
        for number in range(1, 13):
            mapped.setdefault(section_for_class(str(number)), []).append(number)
        self.assertEqual(mapped, expected)

    def test_classes_outside_one_to_twelve_have_no_section(self):
        for value in ('0', '13', '14', '-1', 'LKG', '', None):
            with self.subTest(value=value):
                self.assertIsNone(section_for_class(value))

    def test_numeric_class_with_spaces(self):
        self.assertEqual(section_for_class(' 8 '), 'hs')
        self.assertEqual(section_for_class(11), 'hss')


class GroupingTests(SimpleTestCase):
    def test_three_students_of_one_class_make_one_row(self):
        students = [student(1), student(2), student(3)]
        payments = [payment(1, on(2026, 6, 1), development_fee=1000)]

        rows = class_division_summary(students, payments, FEE_CONFIG)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['key'], '5-A')
        self.assertEqual(rows[0]['total_students'], 3)
        self.assertEqual(rows[0]['development_balance'], Decimal('20000.00'))
        self.assertEqual(rows[0]['bus_balance'], Decimal('2400.00'))
        self.assertEqual(rows[0]['total_balance'], Decimal('22400.00'))
        self.assertEqual(rows[0]['development_collected'], Decimal('1000.00'))

    def test_class_balances_add_up_to_student_balances(self):
        students = [
            student(1),
            student(2, division='B', bus_fee_discount=Decimal('300')),
            student(3, school_class='9', bus_stop='Bus Stand'),
        ]
        payments = [
            payment(1, on(2026, 6, 1), development_fee=8000),
            payment(3, on(2026, 6, 2), school_class='9', bus_fee=200),
        ]

        rows = class_division_summary(students, payments, FEE_CONFIG)
        by_student = {}
        for item in payments:
            by_student.setdefault(item.student_id, []).append(item)
        expected = sum(
            (student_balance(s, by_student.get(s.pk, []), FEE_CONFIG)['grand_total']['remaining'] for s in students),
            Decimal('0'),
        )

        self.assertEqual(sum((row['total_balance'] for row in rows), Decimal('0')), expected)
        self.assertEqual(sum(row['total_students'] for row in rows), len(students))
        self.assertEqual([row['key'] for row in rows], ['5-A', '5-B', '9-A'])

    def test_bus_stop_rows_collect_buses_and_classes(self):
        students = [
            student(1, bus_number='KL-1', trip_number='1'),
            student(2, division='B', bus_number='KL-2', trip_number='1'),
            student(3, bus_stop='Bus Stand'),
        ]

        rows = {row['bus_stop']: row for row in bus_stop_summary(students, [], FEE_CONFIG)}

        self.assertEqual(rows['Main Gate']['total_students'], 2)
        self.assertEqual(rows['Main Gate']['bus_numbers'], ['KL-1', 'KL-2'])
        self.assertEqual(rows['Main Gate']['trip_numbers'], ['1'])
        self.assertEqual(rows['Main Gate']['class_counts'], [{'key': '5-A', 'count': 1}, {'key': '5-B', 'count': 1}])
        self.assertEqual(rows['Bus Stand']['configured_fee'], Decimal('700.00'))

    def test_month_keys_are_zero_padded_and_sorted_newest_first(self):
        self.assertEqual(month_key(on(2026, 9, 5)), '2026-09')
        payments = [
            payment(1, on(2026, 9, 5), development_fee=100),
            payment(1, on(2026, 10, 1), bus_fee=200),
            payment(2, on(2025, 12, 20), special_fee=50),
        ]

        rows = monthly_summary(payments)

        self.assertEqual([row['key'] for row in rows], ['2026-10', '2026-09', '2025-12'])
        self.assertEqual(rows[0]['bus_fee'], Decimal('200.00'))
        self.assertEqual(rows[2]['label'], 'Dec 2025')

    def test_month_detail_has_daily_totals(self):
        payments = [
            payment(1, on(2026, 9, 5), development_fee=100),
            payment(2, on(2026, 9, 5, hour=15), bus_fee=200),
            payment(3, on(2026, 9, 7), bus_fee=300),
            payment(3, on(2026, 8, 7), bus_fee=999),
        ]

        detail = month_detail(payments, 2026, 9)

        self.assertEqual(detail['payment_count'], 3)
        self.assertEqual(detail['total'], Decimal('600.00'))
        self.assertEqual(detail['daily'], [
            {'date': date(2026, 9, 5), 'total': Decimal('300')},
            {'date': date(2026, 9, 7), 'total': Decimal('300')},
        ])

    def test_section_summary_skips_classes_outside_sections(self):
        students = [student(1), student(2, school_class='9'), student(3, school_class='14')]
        payments = [
            payment(1, on(2026, 6, 1), development_fee=500),
            payment(3, on(2026, 6, 1), school_class='14', development_fee=900),
        ]

        rows = {row['code']: row for row in section_summary(students, payments)}

        self.assertEqual(rows['up']['total_students'], 1)
        self.assertEqual(rows['up']['total'], Decimal('500.00'))
        self.assertEqual(rows['up']['average_per_student'], Decimal('500'))
        self.assertEqual(rows['hs']['total_students'], 1)
        self.assertEqual(sum(row['total_students'] for row in rows.values()), 2)
        self.assertEqual(sum((row['total'] for row in rows.values()), Decimal('0')), Decimal('500.00'))

    def test_section_average_rounds_half_up(self):
        students = [student(1), student(2)]
        payments = [payment(1, on(2026, 6, 1), development_fee='100.01')]

        rows = {row['code']: row for row in section_summary(students, payments)}

        self.assertEqual(rows['up']['average_per_student'], Decimal('50.01'))

    def test_unpaid_students_leave_out_fully_paid(self):
        students = [student(1), student(2, name='Aaron')]
        payments = [payment(1, on(2026, 6, 1), development_fee=7000, bus_fee=800)]

        report = unpaid_students(students, payments, FEE_CONFIG)

        self.assertEqual([row['student'].pk for row in report['students']], [2])
        self.assertEqual(report['groups'][0]['key'], '5-A')
        self.assertEqual(report['total_balance'], Decimal('7800.00'))

    def test_filter_payments_by_range_and_class(self):
        payments = [
            payment(1, on(2026, 9, 1), development_fee=100),
            payment(2, on(2026, 9, 10), development_fee=200),
            payment(3, on(2026, 9, 10), school_class='9', development_fee=300),
            payment(4, on(2026, 9, 20), development_fee=400),
        ]

        selected = filter_payments(
            payments,
            date_from=date(2026, 9, 5),
            date_to=date(2026, 9, 30),
            school_class='5',
        )
        self.assertEqual([item.student_id for item in selected], [4, 2])
        self.assertEqual(len(filter_payments(payments, on_date=date(2026, 9, 10))), 2)
        self.assertEqual(len(filter_payments(payments, month='2026-09')), 4)

    def test_class_monthly_matrix_skips_students_without_collections(self):
        students = [student(1), student(2)]
        payments = [
            payment(1, on(2026, 8, 1), development_fee=100, bus_fee=50),
            payment(1, on(2026, 9, 1), bus_fee=200),
        ]

        matrix = class_monthly_matrix(students, payments, category='bus_fee')

        self.assertEqual(matrix['months'], ['2026-08', '2026-09'])
        self.assertEqual(len(matrix['rows']), 1)
        self.assertEqual(matrix['rows'][0]['amounts'], [Decimal('50'), Decimal('200')])
        self.assertEqual(matrix['rows'][0]['total'], Decimal('250'))

    def test_class_report_period_narrows_listing_not_balances(self):
        students = [student(1), student(2, school_class='9')]
        payments = [
            payment(1, on(2026, 8, 1), development_fee=1000),
            payment(1, on(2026, 9, 1), development_fee=500),
        ]

        report = class_report(students, payments, FEE_CONFIG, school_class='5', division='A', month='2026-09')

        self.assertEqual(report['key'], '5-A')
        self.assertEqual(len(report['students']), 1)
        self.assertEqual(report['totals']['total'], Decimal('500.00'))
        self.assertEqual(report['students'][0]['status']['development_fee']['remaining'], Decimal('5500.00'))


class ReportViewTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.clerk = User.objects.create_user(username='clerk1', password='pass12345', role='clerk')
        User.objects.create_user(
            username='teacher5a',
            password='pass12345',
            role='teacher',
            school_class='5',
            division='A',
        )
        for number in range(1, 4):
            Student.objects.create(
                admission_number=f"ADM-{number}",
                name=f"Student {number}",
                mobile='9000000000',
                school_class='5',
                division='A',
                bus_stop='Main Gate',
            )
        self.other = Student.objects.create(
            admission_number='ADM-9',
            name='Other Class',
            mobile='9000000009',
            school_class='9',
            division='C',
            bus_stop='Main Gate',
        )
        record_payment(student=self.other, added_by=self.clerk, development_fee=1234)

    def test_clerk_opens_every_report(self):
        self.client.login(username='clerk1', password='pass12345')
        now = timezone.localtime()
        for url in [
            reverse('class_division_report'),
            reverse('bus_stop_report'),
            reverse('monthly_report'),
            reverse('month_detail_report', kwargs={'year': now.year, 'month': now.month}),
            reverse('section_report'),
            reverse('unpaid_report'),
            reverse('receipt_report'),
            reverse('class_monthly_report') + '?school_class=5&division=A&category=total',
        ]:
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, 200)

    def test_class_division_csv_has_one_row_per_class(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('class_division_report'), {'export': 'csv'})
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[1].startswith('5-A,3,'))

    def test_pdf_export(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('section_report'), {'export': 'pdf'})
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_teacher_sees_only_own_class(self):
        self.client.login(username='teacher5a', password='pass12345')
        response = self.client.get(reverse('teacher_class_report'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Student 1')
        self.assertNotContains(response, 'Other Class')

    def test_teacher_cannot_open_school_reports(self):
        self.client.login(username='teacher5a', password='pass12345')
        self.assertEqual(self.client.get(reverse('class_division_report')).status_code, 403)

    def test_clerk_cannot_open_teacher_report(self):
        self.client.login(username='clerk1', password='pass12345')
        self.assertEqual(self.client.get(reverse('teacher_class_report')).status_code, 403)
