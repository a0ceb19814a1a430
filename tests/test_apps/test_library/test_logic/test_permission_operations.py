"""Tests for permission administration."""

import pytest
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from server.apps.library.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from server.apps.library.logic.folder_operations import create_folder
from server.apps.library.logic.permission_operations import (
    batch_grant,
    batch_grant_multiple,
    check_permission,
    get_permission,
    grant_permission,
    list_permissions,
    list_shared_users,
    revoke_permission,
    update_permission,
    user_permission_summary,
    users_with_access_to_owner_resources,
)
from server.apps.library.models import (
    FolderPermission,
    PermissionRole,
    ResourceKind,
)

User = get_user_model()


@pytest.fixture
def failing_insert_for(monkeypatch):
    """Make folder permission inserts fail for one grantee.

    Returns:
        Function taking the user ID whose inserts raise DatabaseError.
    """
    manager = FolderPermission.objects
    original_create = manager.create

    def factory(failing_user_id: int) -> None:
        def create(**kwargs):
            if kwargs.get('user_id') == failing_user_id:
                raise DatabaseError('insert failed')
            return original_create(**kwargs)

        monkeypatch.setattr(manager, 'create', create)

    return factory


@pytest.mark.django_db
class TestGrantPermission:
    """Tests for grant, update and revoke."""

    def test_grant_default_role(self, user, other_user):
        """Test grants default to VIEWER."""
        folder = create_folder(user.id, 'Docs')

        permission = grant_permission(
            ResourceKind.FOLDER,
            folder.id,
            other_user.id,
        )

        assert permission.role == PermissionRole.VIEWER
        assert permission.folder == folder
        assert permission.user == other_user

    def test_grant_accepts_string_kind(self, user, other_user, make_file):
        """Test kind may be passed as its string value."""
        file_instance = make_file(user)

        permission = grant_permission(
            'file',
            file_instance.id,
            other_user.id,
            'EDITOR',
        )

        assert permission.file == file_instance
        assert permission.role == PermissionRole.EDITOR

    def test_duplicate_grant_conflicts(self, user, other_user):
        """Test one grant per (resource, user)."""
        folder = create_folder(user.id, 'Docs')
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)

        with pytest.raises(ConflictError, match='already exists'):
            grant_permission(
                ResourceKind.FOLDER,
                folder.id,
                other_user.id,
                PermissionRole.EDITOR,
            )

        assert FolderPermission.objects.count() == 1

    def test_grant_unknown_resource(self, other_user):
        """Test missing resource names the kind and ID."""
        with pytest.raises(NotFoundError, match='Folder with id 99999'):
            grant_permission(ResourceKind.FOLDER, 99999, other_user.id)

    def test_grant_unknown_user(self, user):
        """Test missing grantee raises NotFound."""
        folder = create_folder(user.id, 'Docs')

        with pytest.raises(NotFoundError, match='User with id 99999'):
            grant_permission(ResourceKind.FOLDER, folder.id, 99999)

    def test_grant_unknown_kind(self, user, other_user):
        """Test invalid kinds are rejected."""
        with pytest.raises(BadRequestError):
            grant_permission('album', 1, other_user.id)

    def test_acting_user_must_own(self, user, other_user, third_user):
        """Test only the owner may share when an actor is given."""
        folder = create_folder(user.id, 'Docs')

        with pytest.raises(ForbiddenError, match='share this folder'):
            grant_permission(
                ResourceKind.FOLDER,
                folder.id,
                third_user.id,
                acting_user_id=other_user.id,
            )

    def test_update_role(self, user, other_user):
        """Test the role is replaced in place."""
        folder = create_folder(user.id, 'Docs')
        permission = grant_permission(
            ResourceKind.FOLDER,
            folder.id,
            other_user.id,
        )

        updated = update_permission(
            ResourceKind.FOLDER,
            permission.id,
            PermissionRole.EDITOR,
            acting_user_id=user.id,
        )

        assert updated.role == PermissionRole.EDITOR
        assert get_permission(ResourceKind.FOLDER, permission.id).role == (
            PermissionRole.EDITOR
        )

    def test_revoke_twice(self, user, other_user):
        """Test revoking is not idempotent."""
        folder = create_folder(user.id, 'Docs')
        permission = grant_permission(
            ResourceKind.FOLDER,
            folder.id,
            other_user.id,
        )

        revoke_permission(ResourceKind.FOLDER, permission.id)

        with pytest.raises(NotFoundError, match='Permission with id'):
            revoke_permission(ResourceKind.FOLDER, permission.id)

    def test_revoke_unknown(self):
        """Test unknown permission IDs raise NotFound."""
        with pytest.raises(NotFoundError):
            revoke_permission(ResourceKind.FILE, 99999)

    def test_list_permissions(self, user, other_user, third_user):
        """Test all entries of a resource are listed."""
        folder = create_folder(user.id, 'Docs')
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)
        grant_permission(ResourceKind.FOLDER, folder.id, third_user.id)

        permissions = list_permissions(ResourceKind.FOLDER, folder.id)

        assert {entry.user_id for entry in permissions} == {
            other_user.id,
            third_user.id,
        }


@pytest.mark.django_db
class TestBatchGrant:
    """Tests for batch_grant and batch_grant_multiple."""

    def test_batch_grant_counts_existing_as_failed(
        self,
        user,
        other_user,
        third_user,
    ):
        """Test an existing grant is left alone and counted as failed."""
        folder = create_folder(user.id, 'Docs')
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)

        result = batch_grant(
            ResourceKind.FOLDER,
            folder.id,
            [other_user.id, third_user.id],
            PermissionRole.EDITOR,
        )

        assert result.granted == 1
        assert result.failed == 1
        assert [entry.user_id for entry in result.permissions] == [
            third_user.id,
        ]
        assert result.permissions[0].role == PermissionRole.EDITOR
        # The existing grant keeps its role
        assert FolderPermission.objects.get(
            user=other_user,
        ).role == PermissionRole.VIEWER

    def test_batch_grant_unknown_users(self, user, other_user):
        """Test nothing is granted when any user is missing."""
        folder = create_folder(user.id, 'Docs')

        with pytest.raises(BadRequestError, match='Users not found'):
            batch_grant(
                ResourceKind.FOLDER,
                folder.id,
                [other_user.id, 99999],
            )

        assert not FolderPermission.objects.exists()

    def test_batch_grant_multiple(self, user, other_user, third_user):
        """Test every pair is attempted and duplicates are reported."""
        first = create_folder(user.id, 'First')
        second = create_folder(user.id, 'Second')
        grant_permission(ResourceKind.FOLDER, first.id, other_user.id)

        result = batch_grant_multiple(
            ResourceKind.FOLDER,
            [first.id, second.id],
            [other_user.id, third_user.id],
            acting_user_id=user.id,
        )

        assert result.success == 3
        assert result.failed == 1
        assert result.errors[0].resource_id == first.id
        assert result.errors[0].user_id == other_user.id
        assert result.errors[0].error == 'Permission already exists'
        assert FolderPermission.objects.count() == 4

    def test_batch_grant_multiple_unknown_resources(self, user, other_user):
        """Test missing resources fail validation up front."""
        folder = create_folder(user.id, 'Docs')

        with pytest.raises(BadRequestError, match='Folders not found'):
            batch_grant_multiple(
                ResourceKind.FOLDER,
                [folder.id, 99999],
                [other_user.id],
            )

        assert not FolderPermission.objects.exists()

    def test_batch_grant_insert_failure(
        self,
        user,
        other_user,
        third_user,
        failing_insert_for,
    ):
        """Test a failed insert is counted and the rest still granted."""
        folder = create_folder(user.id, 'Docs')
        failing_insert_for(other_user.id)

        result = batch_grant(
            ResourceKind.FOLDER,
            folder.id,
            [other_user.id, third_user.id],
        )

        assert result.granted == 1
        assert result.failed == 1
        assert list(
            FolderPermission.objects.values_list('user_id', flat=True),
        ) == [third_user.id]

    def test_batch_grant_multiple_insert_failure(
        self,
        user,
        other_user,
        third_user,
        failing_insert_for,
    ):
        """Test a failed pair is reported without aborting the others."""
        first = create_folder(user.id, 'First')
        second = create_folder(user.id, 'Second')
        failing_insert_for(other_user.id)

        result = batch_grant_multiple(
            ResourceKind.FOLDER,
            [first.id, second.id],
            [other_user.id, third_user.id],
        )

        assert result.success == 2
        assert result.failed == 2
        assert [(err.resource_id, err.user_id) for err in result.errors] == [
            (first.id, other_user.id),
            (second.id, other_user.id),
        ]
        assert all(err.error == 'insert failed' for err in result.errors)
        assert set(
            FolderPermission.objects.values_list('folder_id', 'user_id'),
        ) == {(first.id, third_user.id), (second.id, third_user.id)}


@pytest.mark.django_db
class TestPermissionQueries:
    """Tests for check, listing and summaries."""

    def test_check_permission(self, user, other_user):
        """Test the report explains role and ownership."""
        folder = create_folder(user.id, 'Docs')
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)

        grantee_check = check_permission(
            ResourceKind.FOLDER,
            folder.id,
            other_user.id,
            PermissionRole.EDITOR,
        )
        owner_check = check_permission(
            ResourceKind.FOLDER,
            folder.id,
            user.id,
        )

        assert grantee_check.has_access is False
        assert grantee_check.user_role == PermissionRole.VIEWER
        assert grantee_check.is_owner is False
        assert owner_check.has_access is True
        assert owner_check.is_owner is True

    def test_list_shared_users(self, user, other_user):
        """Test grantee details are reported."""
        folder = create_folder(user.id, 'Docs')
        permission = grant_permission(
            ResourceKind.FOLDER,
            folder.id,
            other_user.id,
        )

        shared = list_shared_users(ResourceKind.FOLDER, folder.id)

        assert shared.total_users == 1
        entry = shared.users[0]
        assert entry.user_id == other_user.id
        assert entry.user_name == 'Other User'
        assert entry.user_email == 'other@example.com'
        assert entry.permission_id == permission.id

    def test_user_permission_summary(self, user, other_user, make_file):
        """Test grants are listed per kind."""
        folder = create_folder(user.id, 'Docs')
        file_instance = make_file(user)
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)
        grant_permission(
            ResourceKind.FILE,
            file_instance.id,
            other_user.id,
            PermissionRole.EDITOR,
        )

        summary = user_permission_summary(other_user.id)

        assert [entry.resource_name for entry in summary.folders] == ['Docs']
        assert summary.files[0].resource_id == file_instance.id
        assert summary.files[0].role == PermissionRole.EDITOR

    def test_users_with_access_grouped(self, user, other_user, make_file):
        """Test grants are grouped per grantee."""
        first = create_folder(user.id, 'First')
        second = create_folder(user.id, 'Second', description='Q3')
        file_instance = make_file(user)
        grant_permission(ResourceKind.FOLDER, first.id, other_user.id)
        grant_permission(ResourceKind.FOLDER, second.id, other_user.id)
        grant_permission(ResourceKind.FILE, file_instance.id, other_user.id)

        result = users_with_access_to_owner_resources(user.id)

        assert result.meta.total == 1
        entry = result.users[0]
        assert entry.user_id == other_user.id
        assert entry.total_folders == 2
        assert entry.total_files == 1
        assert {grant.resource_name for grant in entry.folders} == {
            'First',
            'Second',
        }

    def test_users_with_access_skips_owner_grants(self, user, make_file):
        """Test the owner's own entries are not reported."""
        file_instance = make_file(user)
        grant_permission(
            ResourceKind.FILE,
            file_instance.id,
            user.id,
            PermissionRole.OWNER,
        )

        result = users_with_access_to_owner_resources(user.id)

        assert result.users == []
        assert result.meta.total == 0

    def test_users_with_access_paginates_users(self, user):
        """Test pages count grouped users, not grants."""
        folder = create_folder(user.id, 'Docs')
        for index in range(3):
            grantee = User.objects.create_user(
                username=f'grantee{index}',
                password='testpass123',
                email=f'grantee{index}@example.com',
            )
            grant_permission(ResourceKind.FOLDER, folder.id, grantee.id)

        first_page = users_with_access_to_owner_resources(
            user.id,
            page=1,
            limit=2,
        )
        second_page = users_with_access_to_owner_resources(
            user.id,
            page=2,
            limit=2,
        )

        assert len(first_page.users) == 2
        assert len(second_page.users) == 1
        assert first_page.meta.total == 3
        assert first_page.meta.total_pages == 2
        all_ids = {
            entry.user_id for entry in first_page.users + second_page.users
        }
        assert len(all_ids) == 3
