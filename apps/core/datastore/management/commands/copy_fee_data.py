from django.core.management.base import BaseCommand, CommandError
from django.core.exceptions import ValidationError

from apps.core.datastore.services import copy_store
from apps.core.datastore.stores import DatabaseFeeStore, JsonFileFeeStore, get_fee_store

STORE_NAMES = (DatabaseFeeStore.name, JsonFileFeeStore.name)


class Command(BaseCommand):
    help = 'Copies students, payments, fee settings and collection entries from one fee store to another.'

    def add_arguments(self, parser):
        parser.add_argument('--source', choices=STORE_NAMES, default=DatabaseFeeStore.name)
        parser.add_argument('--target', choices=STORE_NAMES, default=JsonFileFeeStore.name)

    def handle(self, *args, **options):
        if options['source'] == options['target']:
            raise CommandError('Source and target stores must differ.')

        try:
            counts = copy_store(get_fee_store(options['source']), get_fee_store(options['target']))
        except ValidationError as exc:
            raise CommandError('; '.join(exc.messages)) from exc

        summary = ', '.join(f'{count} {name.replace("_", " ")}' for name, count in counts.items())
        self.stdout.write(self.style.SUCCESS(f'Copied {summary} to the {options["target"]} store.'))
