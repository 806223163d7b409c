import json

from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth.models import Group

from users.models import CustomUser, UserRole, ROLE_GROUPS

# Provisioned accounts of the CAI department, year 3.
DEFAULT_ACCOUNTS = [
    {'name': 'Class Teacher (Sec A)', 'email': 'teachera@mits.ac.in', 'role': UserRole.CLASS_TEACHER, 'department': 'CAI', 'year': '3', 'section': 'A', 'password': 'TSECA'},
    {'name': 'Class Teacher (Sec B)', 'email': 'teacherb@mits.ac.in', 'role': UserRole.CLASS_TEACHER, 'department': 'CAI', 'year': '3', 'section': 'B', 'password': 'TSECB'},
    {'name': 'Class Teacher (Sec C)', 'email': 'teacherc@mits.ac.in', 'role': UserRole.CLASS_TEACHER, 'department': 'CAI', 'year': '3', 'section': 'C', 'password': 'TSECC'},
    {'name': 'CR (Sec A)', 'email': 'cra@mits.ac.in', 'role': UserRole.CR, 'department': 'CAI', 'year': '3', 'section': 'A', 'roll_number': '23691A31CRA', 'password': '23691A31CRA'},
    {'name': 'CR (Sec B)', 'email': 'crb@mits.ac.in', 'role': UserRole.CR, 'department': 'CAI', 'year': '3', 'section': 'B', 'roll_number': '23691A31CRB', 'password': '23691A31CRB'},
    {'name': 'CR (Sec C)', 'email': 'crc@mits.ac.in', 'role': UserRole.CR, 'department': 'CAI', 'year': '3', 'section': 'C', 'roll_number': '23691A31CRC', 'password': '23691A31CRC'},
    # general staff sign in with their college mail, no password
    {'name': 'General Teacher', 'email': 'staff.ai@mits.ac.in', 'role': UserRole.TEACHER, 'department': 'CAI', 'year': '3', 'section': 'A'},
]


class Command(BaseCommand):
    help = 'Create or refresh the provisioned class teacher, CR and staff accounts'

    def add_arguments(self, parser):
        parser.add_argument(
            '--file',
            help='JSON file with a list of accounts (same keys as the built-in defaults)',
        )

    def handle(self, *args, **options):
        accounts = DEFAULT_ACCOUNTS
        if options.get('file'):
            try:
                with open(options['file']) as fh:
                    accounts = json.load(fh)
            except (OSError, ValueError) as e:
                raise CommandError(f"Could not read accounts from {options['file']}: {e}")

        created_count = 0
        for account in accounts:
            account = dict(account)
            password = account.pop('password', None)
            email = account.pop('email').lower()
            user, created = CustomUser.objects.update_or_create(email=email, defaults=account)
            if password:
                user.set_password(password)
            else:
                user.set_unusable_password()
            user.save()
            user.groups.set(Group.objects.filter(name=ROLE_GROUPS[user.role]))
            created_count += int(created)
            self.stdout.write(f"{'Created' if created else 'Updated'} {user.role} {email}")

        self.stdout.write(self.style.SUCCESS(f"{len(accounts)} account(s) seeded, {created_count} new."))
