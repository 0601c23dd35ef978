"""Django storage configuration for the encrypted blob store.

Uploaded files are written to a single S3-compatible bucket through
django-storages. Only ciphertext ever reaches the bucket; encryption
happens in the files app before ``VaultStorage.put`` is called.
"""

from typing import Any, Final

from server.settings.components import config

AWS_STORAGE_BUCKET_NAME = config(
    'AWS_STORAGE_BUCKET_NAME',
    default='secure-file-storage',
)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.files.infrastructure.storage.VaultStorage',
        'OPTIONS': {
            'bucket_name': AWS_STORAGE_BUCKET_NAME,
            'access_key': config('AWS_ACCESS_KEY_ID', default=None),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Generated keys must never clobber
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
