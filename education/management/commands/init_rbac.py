"""
Management command to sync stored permissions of users on predefined roles
"""
from django.core.management.base import BaseCommand

from education.models import CustomUser
from education.permissions import PREDEFINED_ROLES, format_permissions_for_user, permissions_for_role


class Command(BaseCommand):
    help = 'Refresh the stored permission map of every user with a predefined role'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show which users would change without saving',
        )

    def handle(self, *args, **options):
        dry_run = options.get('dry_run', False)
        updated = 0

        for user in CustomUser.objects.all():
            if user.role in PREDEFINED_ROLES:
                permissions = permissions_for_role(user.role)
            else:
                # Custom maps keep only known resource/action pairs
                permissions = format_permissions_for_user([
                    {'resource': resource, 'action': action}
                    for resource, actions in (user.permissions or {}).items()
                    for action in actions
                ])
            if permissions == user.permissions:
                continue

            updated += 1
            if dry_run:
                self.stdout.write(self.style.WARNING(f"[DRY RUN] Would update permissions of {user.username}"))
                continue
            user.permissions = permissions
            user.save(update_fields=['permissions', 'updated_at'])
            self.stdout.write(f"Updated permissions of {user.username} ({user.role})")

        self.stdout.write(self.style.SUCCESS(f"{updated} users {'to update' if dry_run else 'updated'}"))
