"""Business logic layer for files app.

This package contains all business logic for file operations:
- Encrypted upload, download, listing and deletion
- Keeping blob store objects and metadata records consistent
- Building the process-wide service from settings

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
