"""
Management command to add a user to a tenant.

Creates the membership row (and optionally the user) so the person shows up
on the tenant screen with the given role.
"""
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import VoxException
from apps.rbac.models import User
from apps.rbac.services import ProfileService
from apps.tenants.models import Tenant, TenantMember
from apps.tenants.services import TenantService


class Command(BaseCommand):
    help = 'Add a user to a tenant with a membership role'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant',
            type=str,
            required=True,
            help='Tenant ID or slug',
        )
        parser.add_argument(
            '--email',
            type=str,
            required=True,
            help='User email address',
        )
        parser.add_argument(
            '--role',
            type=str,
            default='member',
            choices=[choice for choice, _ in TenantMember.ROLE_CHOICES],
            help='Membership role',
        )
        parser.add_argument(
            '--create-user',
            action='store_true',
            help='Create user if they do not exist (requires --password)',
        )
        parser.add_argument(
            '--password',
            type=str,
            help='Password for new user (only used with --create-user)',
        )
        parser.add_argument(
            '--first-name',
            type=str,
            default='',
            help='First name for new user',
        )

    def handle(self, *args, **options):
        tenant_ref = options['tenant']
        email = options['email']
        password = options.get('password')

        if options['create_user'] and not password:
            raise CommandError('--password is required when using --create-user')

        # Slug first, then ID
        tenant = Tenant.objects.by_slug(tenant_ref)
        if tenant is None:
            try:
                tenant = Tenant.objects.filter(id=UUID(tenant_ref)).first()
            except ValueError:
                tenant = None
        if tenant is None:
            raise CommandError(f'Tenant not found: {tenant_ref}')

        self.stdout.write(f'Tenant: {tenant.name} ({tenant.slug})')

        user = User.objects.by_email(email)
        if user is None:
            if not options['create_user']:
                raise CommandError(
                    f'User not found: {email}\n'
                    f'Use --create-user --password=<password> to create the user'
                )
            user = User.objects.create_user(
                email=email,
                password=password,
                first_name=options.get('first_name', ''),
            )
            self.stdout.write(self.style.SUCCESS(f'✓ Created user: {email}'))
        else:
            self.stdout.write(f'User: {user.email}')

        ProfileService.resolve_profile(user)

        try:
            membership, created = TenantService.add_member(tenant, user, role=options['role'])
        except VoxException as e:
            raise CommandError(e.message) from e

        if created:
            self.stdout.write(
                self.style.SUCCESS(f'✓ Added {user.email} to {tenant.name} as {membership.role}')
            )
        else:
            self.stdout.write(
                self.style.WARNING(f'↻ {user.email} already a member of {tenant.name} ({membership.role})')
            )
