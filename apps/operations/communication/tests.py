from datetime import datetime

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from apps.core.fees.models import Payment
from apps.core.fees.services import record_payment
from apps.core.students.models import Student

from .backends import BaseBackend
from .models import NotificationLog
from .services import format_amount, payment_received_message, send_notification


class ExplodingBackend(BaseBackend):
    def send(self, mobile, message):
        raise ConnectionError('gateway unreachable')


@override_settings(FEEDESK_SCHOOL_NAME='Sarvodaya School')
class PaymentNotificationTests(TestCase):
    def setUp(self):
        self.clerk = get_user_model().objects.create_user(
            username='clerk1',
            password='pass12345',
            role='clerk',
        )
        self.student = Student.objects.create(
            admission_number='ADM-100',
            name='Meera',
            mobile='9876500000',
            school_class='3',
            division='B',
            bus_stop='Main Gate',
        )

    def test_payment_message_text(self):
        payment = Payment(
            student_name='Meera',
            admission_number='ADM-100',
            total_amount='1500.00',
            payment_date=timezone.make_aware(datetime(2026, 6, 5, 11, 30)),
        )
        self.assertEqual(
            payment_received_message(payment),
            'Dear Parent, Payment of ₹1500 received for Meera (ADM-100). '
            'Date: 05/06/2026. Thank you! - Sarvodaya School',
        )

    def test_format_amount_keeps_paise(self):
        self.assertEqual(format_amount('250.50'), '250.50')
        self.assertEqual(format_amount(800), '800')

    def test_recording_payment_sends_sms_and_whatsapp_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            payment = record_payment(student=self.student, added_by=self.clerk, development_fee=1000)

        logs = NotificationLog.objects.filter(payment=payment)
        self.assertEqual(logs.count(), 2)
        self.assertEqual(
            set(logs.values_list('channel', flat=True)),
            {NotificationLog.CHANNEL_SMS, NotificationLog.CHANNEL_WHATSAPP},
        )
        self.assertTrue(all(log.status == NotificationLog.STATUS_SENT for log in logs))
        self.assertIn('₹1000 received for Meera', logs[0].message)

    @override_settings(FEEDESK_SMS_BACKEND='apps.operations.communication.tests.ExplodingBackend')
    def test_backend_failure_is_logged_and_payment_kept(self):
        with self.assertLogs('apps.operations.communication.services', level='ERROR'):
            with self.captureOnCommitCallbacks(execute=True):
                payment = record_payment(student=self.student, added_by=self.clerk, bus_fee=800)

        self.assertTrue(Payment.objects.filter(pk=payment.pk).exists())
        failed = NotificationLog.objects.get(channel=NotificationLog.CHANNEL_SMS)
        self.assertEqual(failed.status, NotificationLog.STATUS_FAILED)
        self.assertEqual(failed.error, 'gateway unreachable')
        self.assertEqual(
            NotificationLog.objects.get(channel=NotificationLog.CHANNEL_WHATSAPP).status,
            NotificationLog.STATUS_SENT,
        )

    def test_missing_mobile_is_skipped(self):
        log = send_notification(channel=NotificationLog.CHANNEL_SMS, mobile='', message='Hello')
        self.assertEqual(log.status, NotificationLog.STATUS_SKIPPED)

    def test_notification_log_view_roles(self):
        self.client.login(username='clerk1', password='pass12345')
        self.assertEqual(self.client.get(reverse('notification_log')).status_code, 200)

        get_user_model().objects.create_user(
            username='teacher3b',
            password='pass12345',
            role='teacher',
            school_class='3',
            division='B',
        )
        self.client.login(username='teacher3b', password='pass12345')
        self.assertEqual(self.client.get(reverse('notification_log')).status_code, 403)
