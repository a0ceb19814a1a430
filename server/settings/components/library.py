"""Library (folders, files, sharing) settings."""

from server.settings.components import config

# Upload limits (50 MB default)
LIBRARY_MAX_UPLOAD_BYTES = config(
    'LIBRARY_MAX_UPLOAD_BYTES',
    cast=int,
    default=50 * 1024 * 1024,
)

# Entropy of public share slugs, in bytes
LIBRARY_PUBLIC_SLUG_BYTES = config(
    'LIBRARY_PUBLIC_SLUG_BYTES',
    cast=int,
    default=16,
)

# Lifetime of signed download URLs, in seconds
LIBRARY_DOWNLOAD_URL_EXPIRE = config(
    'LIBRARY_DOWNLOAD_URL_EXPIRE',
    cast=int,
    default=3600,
)

# Pagination
LIBRARY_DEFAULT_PAGE_SIZE = config(
    'LIBRARY_DEFAULT_PAGE_SIZE',
    cast=int,
    default=20,
)
