"""Administration of explicit folder and file permissions.

Every operation takes a ``ResourceKind`` and runs the same code against
the matching resource and permission tables. Operations that mutate
accept an optional ``acting_user_id``: when given, the actor must own
every resource involved.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final, final

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Model

from server.apps.library.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from server.apps.library.logic.access_control import (
    check_access,
    compute_access,
    require_owner,
)
from server.apps.library.logic.types import (
    BatchGrantResult,
    BulkGrantResult,
    GrantedResource,
    GrantError,
    OwnerGrant,
    PermissionCheck,
    SharedUser,
    SharedUsers,
    UserPermissionSummary,
    UsersWithAccessPage,
    UserWithAccess,
    build_page_meta,
)
from server.apps.library.models import (
    File,
    FilePermission,
    Folder,
    FolderPermission,
    PermissionRole,
    Resource,
    ResourceKind,
)

User = get_user_model()
logger = logging.getLogger(__name__)

_ALREADY_EXISTS: Final = 'Permission already exists'
_OWNER_PAGE_SIZE: Final = 10


@final
@dataclass(frozen=True)
class _AclBinding:
    """Resource and permission tables behind one ResourceKind."""

    resource_model: type[Folder] | type[File]
    permission_model: type[FolderPermission] | type[FilePermission]
    # Name of the permission's foreign key to the resource
    resource_field: str
    label: str


_BINDINGS: Final = {
    ResourceKind.FOLDER: _AclBinding(
        resource_model=Folder,
        permission_model=FolderPermission,
        resource_field='folder',
        label='Folder',
    ),
    ResourceKind.FILE: _AclBinding(
        resource_model=File,
        permission_model=FilePermission,
        resource_field='file',
        label='File',
    ),
}

Permission = FolderPermission | FilePermission


def _binding(kind: ResourceKind | str) -> _AclBinding:
    try:
        return _BINDINGS[ResourceKind(kind)]
    except ValueError as error:
        raise BadRequestError(f'Unknown resource kind: {kind}') from error


def _parse_role(role: PermissionRole | str) -> PermissionRole:
    try:
        return PermissionRole(role)
    except ValueError as error:
        raise BadRequestError(f'Unknown role: {role}') from error


def _get_resource(binding: _AclBinding, resource_id: int) -> Resource:
    try:
        return binding.resource_model.objects.get(pk=resource_id)
    except binding.resource_model.DoesNotExist as error:
        raise NotFoundError(
            f'{binding.label} with id {resource_id} not found',
        ) from error


def _get_permission(binding: _AclBinding, permission_id: int) -> Permission:
    try:
        return binding.permission_model.objects.select_related(
            binding.resource_field,
            'user',
        ).get(pk=permission_id)
    except binding.permission_model.DoesNotExist as error:
        raise NotFoundError(
            f'Permission with id {permission_id} not found',
        ) from error


def _check_actor(
    binding: _AclBinding,
    resource: Resource,
    acting_user_id: int | None,
) -> None:
    if acting_user_id is not None:
        require_owner(
            resource,
            acting_user_id,
            f"You don't have permission to share this {binding.label.lower()}",
        )


def _missing_user_ids(user_ids: Iterable[int]) -> list[int]:
    wanted = set(user_ids)
    found = set(
        User.objects.filter(pk__in=wanted).values_list('pk', flat=True),
    )
    return sorted(wanted - found)


def _user_name(user: Model) -> str:
    return user.get_full_name() or user.get_username()


def grant_permission(
    kind: ResourceKind | str,
    resource_id: int,
    user_id: int,
    role: PermissionRole | str = PermissionRole.VIEWER,
    *,
    acting_user_id: int | None = None,
) -> Permission:
    """Grant a role on a resource to a user.

    Args:
        kind: Resource kind.
        resource_id: Folder or file ID.
        user_id: Grantee.
        role: Granted role.
        acting_user_id: Optional actor who must own the resource.

    Returns:
        Created permission entry.

    Raises:
        NotFoundError: If the resource or the user does not exist.
        ForbiddenError: If the actor doesn't own the resource.
        ConflictError: If the user already holds a grant on the resource.
    """
    binding = _binding(kind)
    role = _parse_role(role)
    resource = _get_resource(binding, resource_id)
    _check_actor(binding, resource, acting_user_id)
    if not User.objects.filter(pk=user_id).exists():
        raise NotFoundError(f'User with id {user_id} not found')

    conflict_message = (
        f'Permission already exists for user {user_id} on '
        f'{binding.resource_field} {resource_id}'
    )
    lookup = {binding.resource_field: resource, 'user_id': user_id}
    if binding.permission_model.objects.filter(**lookup).exists():
        raise ConflictError(conflict_message)

    try:
        with transaction.atomic():
            permission = binding.permission_model.objects.create(
                role=role,
                **lookup,
            )
    except IntegrityError as error:
        raise ConflictError(conflict_message) from error

    logger.info(
        'Permission granted: %s=%d user=%d role=%s',
        binding.resource_field,
        resource_id,
        user_id,
        role,
    )
    return permission


def update_permission(
    kind: ResourceKind | str,
    permission_id: int,
    role: PermissionRole | str,
    *,
    acting_user_id: int | None = None,
) -> Permission:
    """Replace the role of an existing permission entry.

    Raises:
        NotFoundError: If the entry does not exist.
        ForbiddenError: If the actor doesn't own the resource.
    """
    binding = _binding(kind)
    role = _parse_role(role)
    permission = _get_permission(binding, permission_id)
    _check_actor(
        binding,
        getattr(permission, binding.resource_field),
        acting_user_id,
    )

    permission.role = role
    permission.save(update_fields=['role'])
    logger.info('Permission updated: ID=%d role=%s', permission_id, role)
    return permission


def revoke_permission(
    kind: ResourceKind | str,
    permission_id: int,
    *,
    acting_user_id: int | None = None,
) -> None:
    """Delete a permission entry.

    Revoking is not idempotent: a second revoke of the same ID fails.

    Raises:
        NotFoundError: If the entry does not exist.
        ForbiddenError: If the actor doesn't own the resource.
    """
    binding = _binding(kind)
    permission = _get_permission(binding, permission_id)
    _check_actor(
        binding,
        getattr(permission, binding.resource_field),
        acting_user_id,
    )

    permission.delete()
    logger.info('Permission revoked: ID=%d', permission_id)


def get_permission(kind: ResourceKind | str, permission_id: int) -> Permission:
    """Fetch a permission entry with its grantee and resource.

    Raises:
        NotFoundError: If the entry does not exist.
    """
    return _get_permission(_binding(kind), permission_id)


def list_permissions(
    kind: ResourceKind | str,
    resource_id: int,
) -> list[Permission]:
    """List a resource's permission entries, newest first.

    Raises:
        NotFoundError: If the resource does not exist.
    """
    binding = _binding(kind)
    resource = _get_resource(binding, resource_id)
    return list(
        resource.permissions.select_related('user').order_by('-granted_at'),
    )


def batch_grant(
    kind: ResourceKind | str,
    resource_id: int,
    user_ids: Iterable[int],
    role: PermissionRole | str = PermissionRole.VIEWER,
    *,
    acting_user_id: int | None = None,
) -> BatchGrantResult:
    """Grant one resource to many users.

    Users who already hold a grant are left untouched and counted as
    failed, as are inserts that fail.

    Args:
        kind: Resource kind.
        resource_id: Folder or file ID.
        user_ids: Grantees; duplicates are ignored.
        role: Role for every new grant.
        acting_user_id: Optional actor who must own the resource.

    Returns:
        BatchGrantResult with counts and the created entries.

    Raises:
        NotFoundError: If the resource does not exist.
        ForbiddenError: If the actor doesn't own the resource.
        BadRequestError: If any user does not exist.
    """
    binding = _binding(kind)
    role = _parse_role(role)
    resource = _get_resource(binding, resource_id)
    _check_actor(binding, resource, acting_user_id)

    wanted = list(dict.fromkeys(user_ids))
    missing = _missing_user_ids(wanted)
    if missing:
        raise BadRequestError(f'Users not found: {missing}')

    existing = set(
        binding.permission_model.objects.filter(
            **{binding.resource_field: resource},
            user_id__in=wanted,
        ).values_list('user_id', flat=True),
    )

    permissions: list[Permission] = []
    failed = len(existing)
    for user_id in wanted:
        if user_id in existing:
            continue
        try:
            with transaction.atomic():
                permissions.append(
                    binding.permission_model.objects.create(
                        **{binding.resource_field: resource},
                        user_id=user_id,
                        role=role,
                    ),
                )
        except DatabaseError:
            logger.exception(
                'Batch grant failed: %s=%d user=%d',
                binding.resource_field,
                resource_id,
                user_id,
            )
            failed += 1

    logger.info(
        'Batch grant: %s=%d granted=%d failed=%d',
        binding.resource_field,
        resource_id,
        len(permissions),
        failed,
    )
    return BatchGrantResult(
        granted=len(permissions),
        failed=failed,
        permissions=permissions,
    )


def batch_grant_multiple(  # noqa: WPS231
    kind: ResourceKind | str,
    resource_ids: Iterable[int],
    user_ids: Iterable[int],
    role: PermissionRole | str = PermissionRole.VIEWER,
    *,
    acting_user_id: int | None = None,
) -> BulkGrantResult:
    """Grant many resources to many users.

    All IDs are validated up front; then each (resource, user) pair is an
    independent attempt whose failure is recorded without aborting the
    others.

    Args:
        kind: Resource kind.
        resource_ids: Folder or file IDs; duplicates are ignored.
        user_ids: Grantees; duplicates are ignored.
        role: Role for every new grant.
        acting_user_id: Optional actor who must own every resource.

    Returns:
        BulkGrantResult with counts and per-pair errors.

    Raises:
        BadRequestError: If any resource or user does not exist.
        ForbiddenError: If the actor doesn't own every resource.
    """
    binding = _binding(kind)
    role = _parse_role(role)
    wanted_resources = list(dict.fromkeys(resource_ids))
    wanted_users = list(dict.fromkeys(user_ids))

    resources = binding.resource_model.objects.in_bulk(wanted_resources)
    missing_resources = sorted(set(wanted_resources) - set(resources))
    if missing_resources:
        raise BadRequestError(
            f'{binding.label}s not found: {missing_resources}',
        )
    missing_users = _missing_user_ids(wanted_users)
    if missing_users:
        raise BadRequestError(f'Users not found: {missing_users}')
    for resource in resources.values():
        _check_actor(binding, resource, acting_user_id)

    success = 0
    errors: list[GrantError] = []
    for resource_id in wanted_resources:
        lookup = {binding.resource_field: resources[resource_id]}
        for user_id in wanted_users:
            if binding.permission_model.objects.filter(
                **lookup,
                user_id=user_id,
            ).exists():
                errors.append(
                    GrantError(
                        resource_id=resource_id,
                        user_id=user_id,
                        error=_ALREADY_EXISTS,
                    ),
                )
                continue
            try:
                with transaction.atomic():
                    binding.permission_model.objects.create(
                        **lookup,
                        user_id=user_id,
                        role=role,
                    )
            except DatabaseError as error:
                logger.exception(
                    'Bulk grant failed: %s=%d user=%d',
                    binding.resource_field,
                    resource_id,
                    user_id,
                )
                errors.append(
                    GrantError(
                        resource_id=resource_id,
                        user_id=user_id,
                        error=str(error) or 'Unknown error',
                    ),
                )
            else:
                success += 1

    logger.info(
        'Bulk grant: %ss=%d users=%d success=%d failed=%d',
        binding.resource_field,
        len(wanted_resources),
        len(wanted_users),
        success,
        len(errors),
    )
    return BulkGrantResult(success=success, failed=len(errors), errors=errors)


def check_permission(
    kind: ResourceKind | str,
    resource_id: int,
    user_id: int | None,
    required_role: PermissionRole | str | None = None,
) -> PermissionCheck:
    """Report whether a user may act on a resource, and why.

    Raises:
        NotFoundError: If the resource does not exist.
    """
    resource = _get_resource(_binding(kind), resource_id)
    access = compute_access(resource, user_id)
    return PermissionCheck(
        has_access=check_access(resource, user_id, required_role),
        user_role=access.role,
        is_owner=access.is_owner,
    )


def list_shared_users(
    kind: ResourceKind | str,
    resource_id: int,
) -> SharedUsers:
    """List the grantees of a resource.

    Raises:
        NotFoundError: If the resource does not exist.
    """
    users = [
        SharedUser(
            user_id=permission.user_id,
            user_name=_user_name(permission.user),
            user_email=permission.user.email,
            role=PermissionRole(permission.role),
            granted_at=permission.granted_at,
            permission_id=permission.pk,
        )
        for permission in list_permissions(kind, resource_id)
    ]
    return SharedUsers(users=users, total_users=len(users))


def user_permission_summary(user_id: int) -> UserPermissionSummary:
    """List every folder and file a user holds an explicit grant on.

    Raises:
        NotFoundError: If the user does not exist.
    """
    if not User.objects.filter(pk=user_id).exists():
        raise NotFoundError(f'User with id {user_id} not found')

    folders = [
        GrantedResource(
            kind=ResourceKind.FOLDER,
            resource_id=permission.folder_id,
            resource_name=permission.folder.name,
            role=PermissionRole(permission.role),
        )
        for permission in FolderPermission.objects.filter(
            user_id=user_id,
        ).select_related('folder')
    ]
    files = [
        GrantedResource(
            kind=ResourceKind.FILE,
            resource_id=permission.file_id,
            resource_name=permission.file.name,
            role=PermissionRole(permission.role),
        )
        for permission in FilePermission.objects.filter(
            user_id=user_id,
        ).select_related('file')
    ]
    return UserPermissionSummary(user_id=user_id, folders=folders, files=files)


def _grantee_entry(
    grantees: dict[int, UserWithAccess],
    user: Model,
) -> UserWithAccess:
    if user.pk not in grantees:
        grantees[user.pk] = UserWithAccess(
            user_id=user.pk,
            user_name=_user_name(user),
            user_email=user.email,
            user_created_at=user.date_joined,
        )
    return grantees[user.pk]


def users_with_access_to_owner_resources(
    owner_id: int,
    page: int = 1,
    limit: int = _OWNER_PAGE_SIZE,
) -> UsersWithAccessPage:
    """List who holds grants on an owner's resources, grouped per user.

    Users are ordered by first appearance, folder grants (newest first)
    before file grants. Pagination applies to the grouped users, not to
    individual grants.

    Args:
        owner_id: Owner whose folders and files are inspected.
        page: 1-based page of grouped users.
        limit: Users per page.

    Returns:
        UsersWithAccessPage with the page of users and its metadata.

    Raises:
        NotFoundError: If the owner does not exist.
    """
    if not User.objects.filter(pk=owner_id).exists():
        raise NotFoundError(f'User with id {owner_id} not found')
    page = max(page, 1)
    limit = limit if limit > 0 else _OWNER_PAGE_SIZE

    folder_grants = FolderPermission.objects.filter(
        folder__owner_id=owner_id,
    ).exclude(
        user_id=owner_id,
    ).select_related('user', 'folder').order_by('-granted_at')
    file_grants = FilePermission.objects.filter(
        file__owner_id=owner_id,
    ).exclude(
        user_id=owner_id,
    ).exclude(
        role=PermissionRole.OWNER,
    ).select_related('user', 'file').order_by('-granted_at')

    grantees: dict[int, UserWithAccess] = {}
    for folder_grant in folder_grants:
        entry = _grantee_entry(grantees, folder_grant.user)
        entry.folders.append(
            OwnerGrant(
                permission_id=folder_grant.pk,
                resource_id=folder_grant.folder_id,
                resource_name=folder_grant.folder.name,
                resource_description=folder_grant.folder.description,
                role=PermissionRole(folder_grant.role),
                granted_at=folder_grant.granted_at,
            ),
        )
        entry.total_folders += 1
    for file_grant in file_grants:
        entry = _grantee_entry(grantees, file_grant.user)
        entry.files.append(
            OwnerGrant(
                permission_id=file_grant.pk,
                resource_id=file_grant.file_id,
                resource_name=file_grant.file.name,
                resource_description=file_grant.file.description,
                role=PermissionRole(file_grant.role),
                granted_at=file_grant.granted_at,
            ),
        )
        entry.total_files += 1

    all_users = list(grantees.values())
    start = (page - 1) * limit
    return UsersWithAccessPage(
        users=all_users[start:start + limit],
        meta=build_page_meta(page, limit, len(all_users)),
    )
