from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.operations.reports.emails import send_fee_reports


class Command(BaseCommand):
    help = 'Emails the receipt-wise and class monthly collection reports as CSV attachments.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--to',
            action='append',
            default=[],
            help='Recipient address. Repeat for more; defaults to FEEDESK_REPORT_RECIPIENTS.',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Only list receipts from the last N days.',
        )

    def handle(self, *args, **options):
        since = None
        if options['days'] is not None:
            if options['days'] < 1:
                raise CommandError('--days must be at least 1.')
            since = timezone.localdate() - timedelta(days=options['days'] - 1)

        try:
            message = send_fee_reports(options['to'], since=since)
        except ValidationError as exc:
            raise CommandError('; '.join(exc.messages)) from exc
        except OSError as exc:
            raise CommandError(f'Sending the reports failed: {exc}') from exc

        self.stdout.write(self.style.SUCCESS(f'Reports sent to {", ".join(message.to)}.'))
