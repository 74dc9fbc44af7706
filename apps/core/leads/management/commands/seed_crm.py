import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from faker import Faker

from apps.core.enrollments.ledger import create_installment
from apps.core.enrollments.models import EnrolledClient, Installment
from apps.core.enrollments.services import submit_configuration
from apps.core.leads.models import Lead
from apps.core.users.models import User

TECHNOLOGIES = ['Python', 'Java', 'DevOps', 'Data Engineering', 'QA Automation', '.NET', 'Salesforce']
VISA_STATUSES = ['H1B', 'OPT', 'STEM OPT', 'GC', 'Citizen']


class Command(BaseCommand):
    help = 'Seeds the database with demo users, leads and enrollments.'

    def add_arguments(self, parser):
        parser.add_argument('--leads', type=int, default=20, help='Number of leads to create.')
        parser.add_argument('--seed', type=int, default=None, help='Random seed for repeatable data.')

    def _user(self, username, role):
        user, created = User.objects.get_or_create(username=username, defaults={'role': role})
        if created:
            user.set_password('password')
            user.save()
            self.stdout.write(self.style.SUCCESS(f'Created {role} user: {username}'))
        return user

    @transaction.atomic
    def handle(self, *args, **options):
        fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        self.stdout.write('Seeding CRM data...')

        if not User.objects.filter(username='superadmin').exists():
            User.objects.create_superuser('superadmin', 'superadmin@example.com', 'password')
            self.stdout.write(self.style.SUCCESS('Created superadmin user.'))

        self._user('admin', User.ROLE_ADMIN)
        sales_team = [self._user(f'sales{index}', User.ROLE_SALES) for index in range(1, 4)]

        enrolled = 0
        for _ in range(options['leads']):
            owner = random.choice(sales_team)
            status = random.choice([choice for choice, _ in Lead.STATUS_CHOICES])
            lead = Lead.objects.create(
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                primary_email=fake.email(),
                primary_contact=fake.msisdn()[:12],
                technology=random.choice(TECHNOLOGIES),
                country=fake.country()[:60],
                visa_status=random.choice(VISA_STATUSES),
                status=status,
                assigned_to=owner,
                created_by=owner,
            )
            if not lead.is_enrolled:
                continue

            client = EnrolledClient.objects.get(lead=lead)
            charge = random.choice([500, 750, 1000, 1500])
            submit_configuration(
                enrolled_client=client,
                actor=owner,
                charges={
                    'payable_enrollment_charge': charge,
                    'payable_offer_letter_charge': random.choice([1000, 2000]),
                    'first_year_salary': random.choice([80000, 95000, 110000]),
                    'payable_first_year_percentage': random.choice([8, 10, 12]),
                },
            )
            create_installment(
                enrolled_client=client,
                actor=owner,
                charge_type=Installment.CHARGE_ENROLLMENT,
                amount=charge / 2,
                is_initial_payment=True,
            )
            create_installment(
                enrolled_client=client,
                actor=owner,
                charge_type=Installment.CHARGE_ENROLLMENT,
                amount=charge / 2,
                due_date=timezone.localdate() + timedelta(days=30),
            )
            enrolled += 1

        self.stdout.write(self.style.SUCCESS(f"Seeded {options['leads']} leads ({enrolled} enrolled)."))
