"""
Management command to create (or promote) a super admin account
"""
from django.core.management.base import BaseCommand, CommandError

from storefront.core.models import User


class Command(BaseCommand):
    help = "Creates a verified SUPER_ADMIN account, or promotes an existing user"

    def add_arguments(self, parser):
        parser.add_argument('email')
        parser.add_argument('--password', help='Password for a new account')
        parser.add_argument('--full-name', default='Super Admin')

    def handle(self, *args, **options):
        email = options['email'].lower()
        user = User.objects.filter(email__iexact=email).first()

        if user is None:
            if not options['password']:
                raise CommandError('--password is required when creating a new account')
            user = User(email=email, username=email, full_name=options['full_name'])
            user.set_password(options['password'])
            created = True
        else:
            created = False

        user.role = User.ROLE_SUPER_ADMIN
        user.is_verified = True
        user.is_staff = True
        user.is_superuser = True
        user.store = None
        user.save()
        user.ensure_referral_code()

        verb = 'Created' if created else 'Promoted'
        self.stdout.write(self.style.SUCCESS(f"{verb} super admin {user.email}"))
