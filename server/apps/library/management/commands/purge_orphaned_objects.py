"""Management command to remove stored objects no file record references."""

import logging
from collections.abc import Iterator
from datetime import timedelta
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.library.infrastructure.storage import FileStorage, get_storage
from server.apps.library.models import File

_DEFAULT_MIN_AGE_MINUTES: Final = 60
_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


def _walk(storage: FileStorage, prefix: str = '') -> Iterator[str]:
    """Yield every object key below a prefix."""
    directories, file_names = storage.listdir(prefix)
    for file_name in file_names:
        yield f'{prefix}{file_name}'
    for directory in directories:
        yield from _walk(storage, f'{prefix}{directory}/')


class Command(BaseCommand):
    """Delete stored objects left behind by best-effort storage deletes."""

    help = 'Remove stored objects that no file record references'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Skip objects younger than this, they may belong to an '
                f'upload in progress (default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max objects to delete (default: {_DEFAULT_BATCH_SIZE})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        cutoff = timezone.now() - timedelta(minutes=options['min_age_minutes'])

        storage = get_storage()
        referenced = set(File.objects.values_list('file', flat=True))
        self.stdout.write(
            f'Looking for unreferenced objects older than {cutoff}',
        )

        count = 0
        failed = 0
        for key in _walk(storage):
            if count + failed >= batch_size:
                break
            if key in referenced or storage.get_modified_time(key) > cutoff:
                continue

            if dry_run:
                self.stdout.write(f'Would delete: {key}')
                count += 1
                continue

            if storage.discard(key):
                logger.info('Purged orphaned object: %s', key)
                count += 1
            else:
                self.stderr.write(f'Failed to delete {key}')
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} orphaned objects'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} orphaned objects, {failed} failed',
                ),
            )
