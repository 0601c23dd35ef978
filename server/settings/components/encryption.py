"""AWS KMS and parameter store configuration.

The KMS key identifier is resolved once per process: either taken
directly from ``KMS_KEY_ID`` or read from SSM Parameter Store.
"""

from server.settings.components import config

AWS_REGION_NAME = config('AWS_REGION_NAME', default='us-east-1')

# Explicit key id (skips the parameter store lookup when set)
KMS_KEY_ID = config('KMS_KEY_ID', default='')

KMS_KEY_PARAMETER_NAME = config(
    'KMS_KEY_PARAMETER_NAME',
    default='/secure-file-storage/kms-key-id',
)

# Optional Secrets Manager secret holding storage credentials
AWS_CREDENTIALS_SECRET_NAME = config(
    'AWS_CREDENTIALS_SECRET_NAME',
    default='',
)
