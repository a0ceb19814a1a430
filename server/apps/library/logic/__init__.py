"""Business logic layer for library app.

This package contains all business logic for the library:
- Folder and file hierarchy management (create, move, delete, breadcrumbs)
- Access control resolution for owners, grantees and public visitors
- Recursive cloning of folders and files
- Permission (ACL) administration and public sharing

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
