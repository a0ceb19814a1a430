"""Infrastructure layer for library app.

This package contains integrations with external systems:
- Custom storage backend (S3/MinIO/R2)
- Metadata extraction (MIME type, extension) and upload validation

Keep infrastructure concerns separate from business logic.
"""
