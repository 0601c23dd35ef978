"""Shared fixtures for files app tests."""

import threading

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from moto import mock_aws

from server.apps.files.infrastructure.kms import KeyServiceClient
from server.apps.files.infrastructure.metadata import FileRecordRepository
from server.apps.files.infrastructure.storage import VaultStorage
from server.apps.files.logic.file_operations import FileStorageService
from server.apps.files.models import FileRecord

User = get_user_model()

_REGION = 'us-east-1'


class InMemoryRecordRepository:
    """Thread-safe in-memory stand-in for FileRecordRepository."""

    def __init__(self) -> None:
        self.fail_on_save = False
        self.fail_on_delete = False
        self._records: dict[str, FileRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    @property
    def records(self) -> list[FileRecord]:
        with self._lock:
            return list(self._records.values())

    def save(self, record):
        if self.fail_on_save:
            raise DatabaseError('metadata store unavailable')
        with self._lock:
            record.id = self._next_id
            self._next_id += 1
            self._records[record.object_key] = record
        return record

    def find_by_object_key(self, object_key):
        with self._lock:
            return self._records.get(object_key)

    def find_by_file_name(self, file_name):
        with self._lock:
            matches = [
                record for record in self._records.values()
                if record.file_name == file_name
            ]
        if not matches:
            return None
        return max(matches, key=lambda record: (record.uploaded_at, record.id))

    def delete_by_file_name(self, file_name):
        with self._lock:
            keys = [
                key for key, record in self._records.items()
                if record.file_name == file_name
            ]
            for key in keys:
                del self._records[key]
        return len(keys)

    def delete_by_object_key(self, object_key):
        if self.fail_on_delete:
            raise DatabaseError('metadata store unavailable')
        with self._lock:
            return 1 if self._records.pop(object_key, None) else 0


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Point boto3 at fake credentials so no real account is touched."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', _REGION)


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def bucket_name(settings):
    """Name of the mocked bucket (matches the default storage).

    Returns:
        Bucket name.
    """
    return settings.AWS_STORAGE_BUCKET_NAME


@pytest.fixture
def mock_s3(bucket_name):
    """Mock AWS services with the storage bucket created.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name=_REGION)
        conn.create_bucket(Bucket=bucket_name)

        yield conn


@pytest.fixture
def kms_client(mock_s3):
    """boto3 KMS client inside the AWS mock.

    Returns:
        KMS client.
    """
    return boto3.client('kms', region_name=_REGION)


@pytest.fixture
def kms_key_id(kms_client):
    """Create a symmetric KMS key.

    Returns:
        Key id of the new key.
    """
    response = kms_client.create_key(Description='secure-file-storage test key')
    return response['KeyMetadata']['KeyId']


@pytest.fixture
def storage(mock_s3, bucket_name):
    """Blob store backend bound to the mocked bucket.

    Returns:
        VaultStorage instance.
    """
    return VaultStorage(
        bucket_name=bucket_name,
        region_name=_REGION,
        file_overwrite=False,
    )


@pytest.fixture
def key_service(kms_client, kms_key_id):
    """KMS client wrapper bound to the test key.

    Returns:
        KeyServiceClient instance.
    """
    return KeyServiceClient(kms_client, kms_key_id)


@pytest.fixture
def file_service(db, key_service, storage):
    """File storage service backed by mocked AWS and the test database.

    Returns:
        FileStorageService instance.
    """
    return FileStorageService(
        key_service=key_service,
        blob_store=storage,
        records=FileRecordRepository(),
    )


@pytest.fixture
def memory_records():
    """In-memory record repository.

    Returns:
        InMemoryRecordRepository instance.
    """
    return InMemoryRecordRepository()


@pytest.fixture
def memory_file_service(key_service, storage, memory_records):
    """File storage service whose records live in memory.

    Returns:
        FileStorageService instance.
    """
    return FileStorageService(
        key_service=key_service,
        blob_store=storage,
        records=memory_records,
    )
