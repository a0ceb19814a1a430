"""Public sharing through unguessable slugs.

Anonymous callers reach a resource only through its slug, and only while
it is public. Inside a shared folder only public children are listed,
and a descendant can be browsed only when every folder between it and
the shared root is public.
"""

import logging

from server.apps.library.exceptions import NotFoundError
from server.apps.library.logic.access_control import (
    get_capabilities,
    require_owner,
)
from server.apps.library.logic.file_operations import build_download_info
from server.apps.library.logic.queries import (
    breadcrumbs_path,
    collect_breadcrumbs,
    file_entries,
    folder_entries,
    get_file_or_404,
    get_folder_or_404,
    order_by_sort,
)
from server.apps.library.logic.slugs import apply_public_flag
from server.apps.library.logic.types import (
    DownloadInfo,
    FolderContent,
    FolderEntry,
    PublicResource,
    page_bounds,
)
from server.apps.library.models import (
    File,
    Folder,
    Resource,
    ResourceKind,
)

logger = logging.getLogger(__name__)


def set_public(
    kind: ResourceKind | str,
    resource_id: int,
    user_id: int,
    is_public: bool,  # noqa: FBT001
) -> Resource:
    """Publish or unpublish a resource.

    Publishing mints a slug unless the resource already has one;
    unpublishing clears it.

    Raises:
        NotFoundError: If the resource does not exist.
        ForbiddenError: If the caller doesn't own the resource.
    """
    if ResourceKind(kind) == ResourceKind.FOLDER:
        resource: Resource = get_folder_or_404(resource_id)
    else:
        resource = get_file_or_404(resource_id)
    require_owner(resource, user_id)

    update_fields = apply_public_flag(resource, is_public)
    if update_fields:
        resource.save(update_fields=[*update_fields, 'updated_at'])
        logger.info(
            'Public flag set: %s=%d public=%s',
            kind,
            resource_id,
            is_public,
        )
    return resource


def lookup_by_slug(slug: str) -> PublicResource:
    """Resolve a slug to a public folder or, failing that, a public file.

    Raises:
        NotFoundError: If no public resource carries the slug.
    """
    folder = Folder.objects.filter(public_slug=slug, is_public=True).first()
    if folder is not None:
        return PublicResource(kind=ResourceKind.FOLDER, resource=folder)

    file_instance = File.objects.filter(
        public_slug=slug,
        is_public=True,
    ).first()
    if file_instance is not None:
        return PublicResource(kind=ResourceKind.FILE, resource=file_instance)

    raise NotFoundError('Public resource not found')


def _public_descendant(root: Folder, folder_id: int) -> Folder:
    """Resolve a folder below a shared root through public folders only."""
    if folder_id == root.pk:
        return root

    chain = collect_breadcrumbs(folder_id, stop_at=root.pk)
    chain_ids = [crumb.id for crumb in chain]
    if not chain_ids or chain_ids[0] != root.pk:
        raise NotFoundError('Public folder not found')
    if Folder.objects.filter(pk__in=chain_ids, is_public=False).exists():
        raise NotFoundError('Public folder not found')
    return Folder.objects.get(pk=folder_id)


def get_public_folder_content(  # noqa: WPS211
    slug: str,
    folder_id: int | None = None,
    *,
    sort_by: str | None = None,
    sort_order: str = 'asc',
    page: int | None = None,
    limit: int | None = None,
) -> FolderContent:
    """List the public content of a shared folder.

    Args:
        slug: Slug of the shared root folder.
        folder_id: Optional descendant to browse instead of the root.
        sort_by: Sort field ('name', 'order', 'created_at', 'updated_at').
        sort_order: 'asc' or 'desc'.
        page: 1-based page, applied to subfolders and files separately.
        limit: Page size.

    Returns:
        FolderContent whose breadcrumbs start at the shared root. Totals
        count every public child, not just the page.

    Raises:
        NotFoundError: If the slug or the descendant is not reachable.
        BadRequestError: If the sort arguments are invalid.
    """
    root = Folder.objects.filter(public_slug=slug, is_public=True).first()
    if root is None:
        raise NotFoundError('Public folder not found')

    folder = root if folder_id is None else _public_descendant(root, folder_id)
    breadcrumbs = collect_breadcrumbs(folder.pk, stop_at=root.pk)
    page, limit = page_bounds(page, limit)
    start = (page - 1) * limit

    subfolders = order_by_sort(
        folder.children.filter(is_public=True),
        sort_by,
        sort_order,
    )
    files = order_by_sort(
        folder.files.filter(is_public=True),
        sort_by,
        sort_order,
    )
    return FolderContent(
        folder=FolderEntry(
            folder=folder,
            capabilities=get_capabilities(folder, None),
        ),
        breadcrumbs=breadcrumbs,
        path=breadcrumbs_path(breadcrumbs),
        subfolders=folder_entries(subfolders[start:start + limit], None),
        files=file_entries(files[start:start + limit], None),
        total_subfolders=subfolders.count(),
        total_files=files.count(),
    )


def get_public_file(slug: str) -> File:
    """Fetch a public file by its slug.

    Raises:
        NotFoundError: If no public file carries the slug.
    """
    file_instance = File.objects.filter(
        public_slug=slug,
        is_public=True,
    ).first()
    if file_instance is None:
        raise NotFoundError('Public file not found')
    return file_instance


def get_public_file_download_info(slug: str) -> DownloadInfo:
    """Return download information for a public file.

    Raises:
        NotFoundError: If no public file carries the slug.
    """
    return build_download_info(get_public_file(slug))
