"""Infrastructure layer for files app.

This package contains integrations with external systems:
- S3-compatible blob store holding ciphertext (storage)
- AWS KMS encryption of file contents (kms)
- SSM Parameter Store / Secrets Manager lookups (parameters)
- Relational metadata records and object key naming (metadata)

Keep infrastructure concerns separate from business logic.
"""
