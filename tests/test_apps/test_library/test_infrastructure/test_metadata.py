"""Tests for metadata utilities."""

import re

import pytest
from django.core.files.base import ContentFile

from server.apps.library.exceptions import BadRequestError
from server.apps.library.infrastructure.metadata import (
    detect_mime_type,
    generate_storage_key,
    get_file_extension,
    get_file_size,
    sanitize_name,
    validate_storage_key,
    validate_upload,
)

_MAX_SIZE = 1024


def test_detect_mime_type():
    """Test MIME type detection from filename."""
    assert detect_mime_type('test.pdf') == 'application/pdf'
    assert detect_mime_type('test.txt') == 'text/plain'
    assert detect_mime_type('test.jpg') == 'image/jpeg'
    assert detect_mime_type('test.png') == 'image/png'


def test_detect_mime_type_unknown():
    """Test MIME type detection for unknown extension."""
    assert detect_mime_type('test.unknown') == 'application/octet-stream'


def test_get_file_extension():
    """Test extension is lowercased and stripped of its dot."""
    assert get_file_extension('Report.PDF') == 'pdf'
    assert get_file_extension('archive.tar.gz') == 'gz'
    assert get_file_extension('README') == ''


def test_get_file_size():
    """Test size from Django files and plain streams."""
    assert get_file_size(ContentFile(b'12345')) == 5


def test_sanitize_name():
    """Test unsafe characters and bare dot segments are removed."""
    assert sanitize_name('a<b>/../c.txt') == 'ab..c.txt'
    assert sanitize_name('v1..2 notes') == 'v1..2 notes'
    assert sanitize_name(' .. ') == ''
    assert sanitize_name('.') == ''
    assert sanitize_name('  Quarterly  ') == 'Quarterly'
    assert sanitize_name('<>') == ''


def test_generate_storage_key():
    """Test keys are owner-prefixed, random and keep the extension."""
    key = generate_storage_key(7, 'Report.PDF')

    assert re.fullmatch(r'7/[0-9a-f]{32}\.pdf', key)
    assert generate_storage_key(7, 'Report.PDF') != key
    assert re.fullmatch(r'7/[0-9a-f]{32}', generate_storage_key(7, 'README'))


def test_validate_storage_key_valid(user):
    """Test storage key validation with valid key."""
    # Should not raise
    validate_storage_key(user.id, f'{user.id}/abc.pdf')


def test_validate_storage_key_wrong_user(user):
    """Test storage key validation with wrong user ID."""
    wrong_id = user.id + 100

    with pytest.raises(BadRequestError, match='does not match owner'):
        validate_storage_key(user.id, f'{wrong_id}/abc.pdf')


@pytest.mark.parametrize('storage_key', ['', 'documents/abc.pdf'])
def test_validate_storage_key_invalid(storage_key):
    """Test empty and non-numeric prefixes are rejected."""
    with pytest.raises(BadRequestError):
        validate_storage_key(1, storage_key)


def test_validate_upload_accepts_document():
    """Test allowed extension, type and size pass."""
    # Should not raise
    validate_upload('report.pdf', 'application/pdf', 100, _MAX_SIZE)


def test_validate_upload_rejects_extension():
    """Test executable extensions are refused."""
    with pytest.raises(BadRequestError, match='extension not allowed'):
        validate_upload('run.exe', 'application/pdf', 100, _MAX_SIZE)


def test_validate_upload_rejects_mime_type():
    """Test declared MIME type must be allowed too."""
    with pytest.raises(BadRequestError, match='type not allowed'):
        validate_upload('report.pdf', 'text/html', 100, _MAX_SIZE)


def test_validate_upload_rejects_size():
    """Test uploads over the limit are refused."""
    with pytest.raises(BadRequestError, match='too large'):
        validate_upload('report.pdf', 'application/pdf', 2048, _MAX_SIZE)
