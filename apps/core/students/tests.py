from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse

from apps.core.fees.services import record_payment

from .models import Student
from .services import (
    DuplicateAdmissionNumber,
    create_student,
    delete_student,
    filter_students,
    import_students,
    parse_student_csv,
    update_student,
)


def student_fields(**overrides):
    fields = {
        'admission_number': 'ADM-001',
        'name': 'Arjun',
        'mobile': '9876543210',
        'school_class': '5',
        'division': 'A',
        'bus_stop': 'Main Gate',
        'bus_number': 'KL-07-1001',
        'trip_number': '1',
    }
    fields.update(overrides)
    return fields


class StudentServiceTests(TestCase):
    def test_create_student_strips_admission_number(self):
        student = create_student(**student_fields(admission_number='  ADM-009 '))
        self.assertEqual(student.admission_number, 'ADM-009')
        self.assertEqual(student.section, 'up')
        self.assertEqual(student.class_key, '5-A')

    def test_duplicate_admission_number_is_rejected_before_write(self):
        create_student(**student_fields())
        with self.assertRaises(DuplicateAdmissionNumber) as ctx:
            create_student(**student_fields(name='Another'))
        self.assertEqual(ctx.exception.code, 'duplicate_admission_number')
        self.assertEqual(Student.objects.count(), 1)

    def test_update_student_rejects_taken_admission_number(self):
        create_student(**student_fields())
        other = create_student(**student_fields(admission_number='ADM-002'))
        with self.assertRaises(DuplicateAdmissionNumber):
            update_student(other, admission_number='ADM-001')

    def test_update_student_keeps_own_admission_number(self):
        student = create_student(**student_fields())
        update_student(student, admission_number='ADM-001', bus_fee_discount=Decimal('150'))
        student.refresh_from_db()
        self.assertEqual(student.bus_fee_discount, Decimal('150.00'))

    def test_delete_student_keeps_payments(self):
        student = create_student(**student_fields())
        clerk = get_user_model().objects.create_user(username='clerk1', password='pass12345', role='clerk')
        payment = record_payment(student=student, added_by=clerk, development_fee=500)

        delete_student(student)

        payment.refresh_from_db()
        self.assertIsNone(payment.student_id)
        self.assertEqual(payment.student_name, 'Arjun')
        self.assertEqual(payment.admission_number, 'ADM-001')

    def test_import_counts_added_skipped_and_failed_rows(self):
        create_student(**student_fields())
        result = import_students([
            student_fields(admission_number='ADM-010', name='Diya', division='b'),
            student_fields(),
            student_fields(admission_number='ADM-011', mobile=''),
            student_fields(admission_number='ADM-012', school_class='14'),
        ])

        self.assertEqual(result['success_count'], 1)
        self.assertEqual(result['skip_count'], 2)
        self.assertEqual(result['failed_count'], 1)
        self.assertEqual(result['success_count'] + result['skip_count'] + result['failed_count'], 4)
        self.assertIn('Failed to add', result['errors'][2])
        self.assertEqual(len(result['errors']), 3)
        self.assertIn('already exists', result['errors'][0])
        self.assertIn('empty fields [mobile]', result['errors'][1])
        self.assertEqual(Student.objects.get(admission_number='ADM-010').division, 'B')

    def test_parse_student_csv_accepts_export_headers(self):
        content = (
            'Admission No,Name,Mobile,Class,Division,Bus Stop,Bus Number,Trip Number\n'
            'ADM-020,"Nair, Kavya",9000000000,7,C,Market Square,KL-1,2\n'
        )
        rows = parse_student_csv(content)
        self.assertEqual(rows[0]['admission_number'], 'ADM-020')
        self.assertEqual(rows[0]['name'], 'Nair, Kavya')
        self.assertEqual(rows[0]['bus_stop'], 'Market Square')

    def test_filter_students(self):
        create_student(**student_fields())
        create_student(**student_fields(admission_number='ADM-002', name='Bina', school_class='6', bus_stop='Bus Stand'))

        self.assertEqual(filter_students(Student.objects.all(), search='bin').count(), 1)
        self.assertEqual(filter_students(Student.objects.all(), school_class='5').count(), 1)
        self.assertEqual(filter_students(Student.objects.all(), bus_stop='Bus Stand').count(), 1)


class StudentViewTests(TestCase):
    def setUp(self):
        User = get_user_model()
        User.objects.create_user(username='clerk1', password='pass12345', role='clerk')
        User.objects.create_user(
            username='teacher5a',
            password='pass12345',
            role='teacher',
            school_class='5',
            division='A',
        )

    def test_clerk_can_create_student(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.post(reverse('student_create'), {
            **student_fields(),
            'bus_fee_discount': '0',
        })
        self.assertEqual(response.status_code, 302)
        self.assertTrue(Student.objects.filter(admission_number='ADM-001').exists())

    def test_duplicate_admission_number_shows_field_error(self):
        create_student(**student_fields())
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.post(reverse('student_create'), {
            **student_fields(name='Copy'),
            'bus_fee_discount': '0',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'already exists')
        self.assertEqual(Student.objects.count(), 1)

    def test_teacher_cannot_manage_students(self):
        self.client.login(username='teacher5a', password='pass12345')
        self.assertEqual(self.client.get(reverse('student_list')).status_code, 403)

    def test_student_csv_export_is_header_only_when_empty(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('student_list'), {'export': 'csv'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content.decode().strip().splitlines(), [
            'Admission No,Name,Mobile,Class,Division,Bus Stop,Bus Number,Trip Number,Bus Fee Discount',
        ])

    def test_import_upload(self):
        self.client.login(username='clerk1', password='pass12345')
        upload = SimpleUploadedFile(
            'students.csv',
            b'Admission No,Name,Mobile,Class,Division,Bus Stop,Bus Number,Trip Number\n'
            b'ADM-030,Ravi,9000000001,9,D,Temple Road,KL-2,1\n',
            content_type='text/csv',
        )
        response = self.client.post(reverse('student_import'), {'file': upload})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Student.objects.filter(admission_number='ADM-030', division='D').exists())

    def test_student_detail_shows_balance(self):
        student = create_student(**student_fields(bus_fee_discount=Decimal('100')))
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('student_detail', kwargs={'pk': student.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'ADM-001')
