"""HTTP views for encrypted file storage."""

import logging
from collections.abc import Callable
from functools import wraps
from typing import Final

from django.http import (
    FileResponse,
    HttpRequest,
    HttpResponse,
    JsonResponse,
)
from django.utils import timezone
from django.utils.http import content_disposition_header
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from server.apps.files.authentication import basic_auth_required
from server.apps.files.exceptions import (
    FileStorageError,
    InputError,
    MetadataInconsistencyError,
    NotFoundError,
    UpstreamServiceError,
)
from server.apps.files.logic.file_operations import get_file_storage_service
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)

_UPLOAD_FIELD: Final = 'file'

# Most specific classes first
_ERROR_STATUSES: Final = (
    (InputError, 400, 'Bad Request'),
    (NotFoundError, 404, 'Not Found'),
    (UpstreamServiceError, 502, 'Bad Gateway'),
    (MetadataInconsistencyError, 500, 'Internal Server Error'),
    (FileStorageError, 500, 'Internal Server Error'),
)

_View = Callable[..., HttpResponse]


def _error_response(error: FileStorageError) -> JsonResponse:
    for error_class, status, reason in _ERROR_STATUSES:
        if isinstance(error, error_class):
            break
    return JsonResponse(
        {
            'timestamp': timezone.now().isoformat(),
            'status': status,
            'error': reason,
            'message': str(error),
        },
        status=status,
    )


def _handle_storage_errors(view: _View) -> _View:
    """Turn file storage errors into JSON error responses."""
    @wraps(view)
    def wrapper(request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except FileStorageError as error:
            if isinstance(error, (InputError, NotFoundError)):
                logger.info('Request rejected: %s', error)
            else:
                logger.error(
                    'Storage failure: operation=%s, key=%s, error=%s',
                    error.operation,
                    error.object_key,
                    error,
                )
            return _error_response(error)

    return wrapper


def _serialize_record(record: FileRecord) -> dict[str, object]:
    return {
        'id': record.id,
        'bucket_name': record.bucket_name,
        'file_name': record.file_name,
        'object_key': record.object_key,
        'file_size': record.file_size,
        'uploaded_by': record.uploaded_by,
        'uploaded_at': record.uploaded_at.isoformat(),
    }


@csrf_exempt
@require_http_methods(['POST'])
@basic_auth_required
@_handle_storage_errors
def upload_file(request: HttpRequest) -> HttpResponse:
    """Upload a file from the multipart ``file`` field."""
    uploaded = request.FILES.get(_UPLOAD_FIELD)
    if uploaded is None:
        raise InputError(
            f'Multipart field "{_UPLOAD_FIELD}" is required',
            operation='upload',
        )

    logger.info('Received file upload request: %s', uploaded.name)
    service = get_file_storage_service()
    object_key = service.upload(
        uploaded,
        uploaded.name,
        uploaded_by=request.user.get_username(),
    )
    return JsonResponse(
        {
            'object_key': object_key,
            'message': f'File uploaded successfully with name: {object_key}',
        },
        status=201,
    )


@require_http_methods(['GET'])
@basic_auth_required
@_handle_storage_errors
def download_file_bytes(request: HttpRequest, object_key: str) -> HttpResponse:
    """Return the decrypted file contents in one response body."""
    logger.info('Received file download request: %s', object_key)
    content = get_file_storage_service().download_as_bytes(object_key)
    response = HttpResponse(content, content_type='application/octet-stream')
    response['Content-Disposition'] = content_disposition_header(
        as_attachment=True,
        filename=object_key,
    )
    return response


@require_http_methods(['GET'])
@basic_auth_required
@_handle_storage_errors
def download_file(request: HttpRequest, object_key: str) -> HttpResponse:
    """Stream the decrypted file from a temporary file.

    FileResponse closes (and thereby deletes) the temporary file once
    the response has been sent.
    """
    logger.info('Received file download request: %s', object_key)
    handle = get_file_storage_service().open_download(object_key)
    return FileResponse(
        handle,
        as_attachment=True,
        filename=object_key,
        content_type='application/octet-stream',
    )


@require_http_methods(['GET'])
@basic_auth_required
@_handle_storage_errors
def list_files(request: HttpRequest) -> HttpResponse:
    """List object keys in the bucket."""
    logger.info('Received request to list files')
    files = list(get_file_storage_service().list_files())
    return JsonResponse({'files': files})


@require_http_methods(['GET'])
@basic_auth_required
@_handle_storage_errors
def file_info(request: HttpRequest, object_key: str) -> HttpResponse:
    """Return the metadata record of a stored file."""
    record = get_file_storage_service().get_record(object_key)
    return JsonResponse(_serialize_record(record))


@csrf_exempt
@require_http_methods(['DELETE'])
@basic_auth_required
@_handle_storage_errors
def delete_file(request: HttpRequest, object_key: str) -> HttpResponse:
    """Delete a stored file and its metadata."""
    get_file_storage_service().delete(object_key)
    logger.info('File deleted via API: %s', object_key)
    return JsonResponse({'message': f'File deleted successfully: {object_key}'})
