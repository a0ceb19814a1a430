"""Access control resolution for folders and files.

A caller's access to a resource comes from, in order:
1. Ownership - absolute, independent of any permission entry.
2. An explicit permission entry for (resource, caller).
3. The resource's public flag - read-only, without a role.

Anonymous callers are represented by ``user_id=None``.
"""

import logging
from dataclasses import dataclass
from typing import Final, final

from django.db.models import Prefetch, QuerySet

from server.apps.library.exceptions import ForbiddenError
from server.apps.library.logic.types import Capabilities
from server.apps.library.models import (
    FilePermission,
    Folder,
    FolderPermission,
    PermissionRole,
    Resource,
)

logger = logging.getLogger(__name__)

_ROLE_RANK: Final = {
    PermissionRole.VIEWER: 1,
    PermissionRole.EDITOR: 2,
    PermissionRole.OWNER: 3,
}

# Attribute holding the caller's prefetched permission entries
CALLER_PERMISSIONS_ATTR: Final = 'caller_permissions'


@final
@dataclass(frozen=True)
class Access:
    """Effective access of one caller to one resource."""

    role: PermissionRole | None
    is_owner: bool
    is_public: bool

    @property
    def has_access(self) -> bool:
        """Whether the caller may at least read the resource."""
        return self.role is not None or self.is_public


def role_rank(role: PermissionRole | str | None) -> int:
    """Rank of a role in the VIEWER < EDITOR < OWNER order.

    Args:
        role: Role value, or None for "no role".

    Returns:
        1-3 for known roles, 0 for None.
    """
    if role is None:
        return 0
    return _ROLE_RANK[PermissionRole(role)]


def role_satisfies(
    role: PermissionRole | str | None,
    required_role: PermissionRole | str,
) -> bool:
    """Check whether ``role`` meets the ``required_role`` minimum."""
    return role is not None and role_rank(role) >= role_rank(required_role)


def resource_label(resource: Resource) -> str:
    """Lowercase noun for messages ('folder' or 'file')."""
    return 'folder' if isinstance(resource, Folder) else 'file'


def _find_grant(resource: Resource, user_id: int) -> PermissionRole | None:
    prefetched = getattr(resource, CALLER_PERMISSIONS_ATTR, None)
    if prefetched is not None:
        roles = [entry.role for entry in prefetched if entry.user_id == user_id]
    else:
        roles = list(
            resource.permissions.filter(
                user_id=user_id,
            ).values_list('role', flat=True)[:1],
        )
    return PermissionRole(roles[0]) if roles else None


def compute_access(resource: Resource, user_id: int | None) -> Access:
    """Compute a caller's effective access to a resource.

    Args:
        resource: Folder or File.
        user_id: Caller's user ID, or None for anonymous.

    Returns:
        Access with the caller's role (OWNER for the owner, the granted
        role for grantees, None otherwise) and the public flag.
    """
    if user_id is not None and resource.owner_id == user_id:
        return Access(
            role=PermissionRole.OWNER,
            is_owner=True,
            is_public=resource.is_public,
        )

    role = _find_grant(resource, user_id) if user_id is not None else None
    return Access(role=role, is_owner=False, is_public=resource.is_public)


def check_access(
    resource: Resource,
    user_id: int | None,
    required_role: PermissionRole | str | None = None,
) -> bool:
    """Check whether a caller meets a minimum role on a resource.

    Public resources satisfy read-only checks (no ``required_role``) for
    everyone, including anonymous callers, but never an explicit role.

    Args:
        resource: Folder or File.
        user_id: Caller's user ID, or None for anonymous.
        required_role: Minimum role, or None for plain read access.

    Returns:
        True if access is allowed.
    """
    access = compute_access(resource, user_id)
    if access.is_owner:
        return True
    if required_role is None:
        return access.has_access
    return role_satisfies(access.role, required_role)


def require_access(
    resource: Resource,
    user_id: int | None,
    required_role: PermissionRole | str | None = None,
) -> None:
    """Raise unless the caller meets a minimum role on a resource.

    Raises:
        ForbiddenError: If ``check_access`` fails.
    """
    if not check_access(resource, user_id, required_role):
        logger.warning(
            'Access denied: user=%s %s=%d required=%s',
            user_id,
            resource_label(resource),
            resource.pk,
            required_role or 'READ',
        )
        raise ForbiddenError(
            f'Access denied to this {resource_label(resource)}',
        )


def require_owner(
    resource: Resource,
    user_id: int | None,
    message: str | None = None,
) -> None:
    """Raise unless the caller owns the resource.

    Raises:
        ForbiddenError: If the caller is not the owner.
    """
    if user_id is None or resource.owner_id != user_id:
        raise ForbiddenError(
            message or f"You don't own this {resource_label(resource)}",
        )


def get_capabilities(resource: Resource, user_id: int | None) -> Capabilities:
    """Derive response-time capability flags for a caller.

    Args:
        resource: Folder or File.
        user_id: Caller's user ID, or None for anonymous.

    Returns:
        Capabilities, never persisted.
    """
    access = compute_access(resource, user_id)
    return Capabilities(
        is_owner=access.is_owner,
        user_role=access.role,
        can_edit=access.is_owner or access.role == PermissionRole.EDITOR,
        can_delete=access.is_owner,
        can_share=access.is_owner,
        can_download=access.has_access,
    )


def with_caller_permissions(
    queryset: QuerySet,
    user_id: int | None,
) -> QuerySet:
    """Prefetch the caller's permission entries for a listing.

    Lets ``compute_access`` resolve grants without one query per row.

    Args:
        queryset: Folder or File queryset.
        user_id: Caller's user ID, or None for anonymous.

    Returns:
        Queryset with ``caller_permissions`` prefetched.
    """
    permission_model = (
        FolderPermission if queryset.model is Folder else FilePermission
    )
    return queryset.prefetch_related(
        Prefetch(
            'permissions',
            queryset=permission_model.objects.filter(user_id=user_id),
            to_attr=CALLER_PERMISSIONS_ATTR,
        ),
    )
