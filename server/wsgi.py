"""WSGI entry point.

The file storage service is built before the application is returned,
so a KMS key id that cannot be resolved keeps the process from
becoming ready.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'server.settings')

application = get_wsgi_application()

from server.apps.files.logic.file_operations import (  # noqa: E402
    get_file_storage_service,
)

get_file_storage_service()
