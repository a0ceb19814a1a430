"""Public slug minting for folders and files."""

import logging
import secrets

from django.conf import settings

from server.apps.library.models import Resource

logger = logging.getLogger(__name__)


def generate_public_slug() -> str:
    """Generate an unguessable URL-safe token.

    Entropy is ``LIBRARY_PUBLIC_SLUG_BYTES`` random bytes.

    Returns:
        URL-safe token string.
    """
    return secrets.token_urlsafe(
        getattr(settings, 'LIBRARY_PUBLIC_SLUG_BYTES', 16),
    )


def apply_public_flag(resource: Resource, is_public: bool) -> list[str]:
    """Set a resource's public flag and keep its slug in sync.

    Publishing mints a slug unless one is already set; unpublishing
    clears it. The resource is not saved.

    Args:
        resource: Folder or File (saved or not).
        is_public: New value of the flag.

    Returns:
        Names of the fields that changed, for ``save(update_fields=...)``.
    """
    changed: list[str] = []
    if resource.is_public != is_public:
        resource.is_public = is_public
        changed.append('is_public')

    if is_public and not resource.public_slug:
        resource.public_slug = generate_public_slug()
        changed.append('public_slug')
    elif not is_public and resource.public_slug:
        resource.public_slug = None
        changed.append('public_slug')

    if changed:
        logger.debug(
            'Public flag applied: %s pk=%s public=%s',
            type(resource).__name__,
            resource.pk,
            is_public,
        )
    return changed
