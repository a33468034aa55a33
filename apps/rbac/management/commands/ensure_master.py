"""
Management command to make sure the platform master account exists.

Safe to run on every deploy: an existing account keeps its password and
only gets its global master grant restored if it was removed.
"""
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.rbac.models import User, RoleGrant
from apps.rbac.policy import MASTER
from apps.rbac.services import ProfileService


class Command(BaseCommand):
    help = 'Create or repair the platform master account'

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            type=str,
            help='Master email (defaults to MASTER_EMAIL)',
        )
        parser.add_argument(
            '--password',
            type=str,
            help='Password used only when the account is created (defaults to MASTER_PASSWORD)',
        )
        parser.add_argument(
            '--name',
            type=str,
            default='Master',
            help='First name for a new account',
        )

    def handle(self, *args, **options):
        email = options.get('email') or getattr(settings, 'MASTER_EMAIL', '')
        password = options.get('password') or getattr(settings, 'MASTER_PASSWORD', '')

        if not email:
            raise CommandError('Provide --email or set MASTER_EMAIL')

        with transaction.atomic():
            user = User.objects.by_email(email)
            if user is None:
                if not password:
                    raise CommandError(
                        f'User not found: {email}\n'
                        f'Provide --password or set MASTER_PASSWORD to create it'
                    )
                user = User.objects.create_user(
                    email=email,
                    password=password,
                    first_name=options['name'],
                )
                self.stdout.write(self.style.SUCCESS(f'✓ Created user: {user.email}'))
            else:
                self.stdout.write(f'User: {user.email}')

            ProfileService.resolve_profile(user)

            _, created = RoleGrant.objects_with_deleted.update_or_create(
                user=user,
                role=MASTER,
                tenant=None,
                defaults={'granted_by': None, 'deleted_at': None},
            )
            profile = ProfileService.sync_level(user)

        if created:
            self.stdout.write(self.style.SUCCESS(f'✓ Granted master role to {user.email}'))
        else:
            self.stdout.write(self.style.WARNING(f'↻ Master role already present for {user.email}'))
        self.stdout.write(f'Profile level: {profile.user_level}')
