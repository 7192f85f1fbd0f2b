import random

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction
from faker import Faker

from apps.core.fees.models import FeeSetting
from apps.core.fees.services import update_fee_configuration
from apps.core.students.services import create_student
from apps.core.users.models import User
from apps.core.utils.classes import CLASS_NUMBERS, DIVISIONS, SECTION_CODES


class Command(BaseCommand):
    help = 'Creates the default fee desk users and fee settings, plus optional demo students.'

    def add_arguments(self, parser):
        parser.add_argument('--password', required=True, help='Password given to every created user.')
        parser.add_argument('--students', type=int, default=0, help='Number of demo students to create.')
        parser.add_argument('--skip-teachers', action='store_true', help='Do not create class teacher accounts.')

    def _create_user(self, username, password, **fields):
        user, created = User.objects.get_or_create(username=username, defaults=fields)
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f'Created {fields["role"]} user: {username}'))
        return created

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding fee desk...')
        password = options['password']

        created_users = 0
        for username, role in (('admin', User.ROLE_ADMIN), ('clerk', User.ROLE_CLERK), ('sarvodaya', User.ROLE_SARVODAYA)):
            created_users += self._create_user(username, password, role=role)

        # One section head per section, named after the section code.
        for code in SECTION_CODES:
            created_users += self._create_user(code, password, role=User.ROLE_SARVODAYA, section=code)

        if not options['skip_teachers']:
            for number in CLASS_NUMBERS:
                for division in DIVISIONS:
                    created_users += self._create_user(
                        f'class{number}{division.lower()}',
                        password,
                        role=User.ROLE_TEACHER,
                        school_class=str(number),
                        division=division,
                    )

        if FeeSetting.objects.exists():
            self.stdout.write('Fee settings already stored, leaving them unchanged.')
        else:
            update_fee_configuration(
                development_fees=settings.FEEDESK_DEFAULT_DEVELOPMENT_FEES,
                bus_stops=settings.FEEDESK_DEFAULT_BUS_STOPS,
            )
            self.stdout.write(self.style.SUCCESS('Stored the default fee settings.'))

        created_students = 0
        if options['students']:
            fake = Faker('en_IN')
            bus_stops = list(settings.FEEDESK_DEFAULT_BUS_STOPS)
            for _ in range(options['students']):
                student = create_student(
                    admission_number=str(fake.unique.random_number(digits=6, fix_len=True)),
                    name=fake.name(),
                    mobile=fake.numerify('9#########'),
                    school_class=str(random.choice(CLASS_NUMBERS)),
                    division=random.choice(DIVISIONS),
                    bus_stop=random.choice(bus_stops),
                    bus_fee_discount=random.choice([0, 0, 0, 100, 200]),
                )
                created_students += 1
                self.stdout.write(f'  - {student}')

        self.stdout.write(self.style.SUCCESS(
            f'Seeding complete: {created_users} users and {created_students} students created.'
        ))
