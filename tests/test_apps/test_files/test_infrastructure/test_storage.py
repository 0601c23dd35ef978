"""Tests for the VaultStorage blob store backend."""

from datetime import timedelta

import pytest
from django.utils import timezone

from server.apps.files.exceptions import NotFoundError, UpstreamServiceError
from server.apps.files.infrastructure.storage import VaultStorage


def test_put_and_get_bytes(storage):
    """Test bytes written with put come back unchanged."""
    saved_key = storage.put('abc_report.pdf', b'ciphertext')

    assert saved_key == 'abc_report.pdf'
    assert storage.get_bytes(saved_key) == b'ciphertext'


def test_put_empty_object(storage):
    """Test zero-length objects are stored."""
    saved_key = storage.put('abc_empty.txt', b'')

    assert storage.object_exists(saved_key)
    assert storage.get_bytes(saved_key) == b''


def test_put_does_not_overwrite(storage):
    """Test a second put under the same key gets an alternative key."""
    first_key = storage.put('abc_report.pdf', b'first')
    second_key = storage.put('abc_report.pdf', b'second')

    assert first_key != second_key
    assert storage.get_bytes(first_key) == b'first'
    assert storage.get_bytes(second_key) == b'second'


def test_get_stream(storage):
    """Test streaming read of an object body."""
    storage.put('abc_report.pdf', b'x' * 10000)

    stream = storage.get_stream('abc_report.pdf')
    try:
        assert stream.read(100) == b'x' * 100
        assert len(stream.read()) == 9900
    finally:
        stream.close()


def test_get_missing_object(storage):
    """Test reading a missing key raises NotFoundError."""
    with pytest.raises(NotFoundError) as exc_info:
        storage.get_bytes('missing_report.pdf')

    assert exc_info.value.operation == 'get'
    assert exc_info.value.object_key == 'missing_report.pdf'


def test_delete(storage):
    """Test delete removes the object."""
    storage.put('abc_report.pdf', b'ciphertext')

    storage.delete('abc_report.pdf')

    assert not storage.object_exists('abc_report.pdf')


def test_delete_missing_object(storage):
    """Test deleting a missing key raises NotFoundError."""
    with pytest.raises(NotFoundError) as exc_info:
        storage.delete('missing_report.pdf')

    assert exc_info.value.operation == 'delete'


def test_object_exists(storage):
    """Test existence check for present and missing keys."""
    storage.put('abc_report.pdf', b'ciphertext')

    assert storage.object_exists('abc_report.pdf')
    assert not storage.object_exists('missing_report.pdf')


def test_list_keys(storage):
    """Test listing returns every stored key."""
    storage.put('a_one.txt', b'1')
    storage.put('b_two.txt', b'2')

    assert sorted(storage.list_keys()) == ['a_one.txt', 'b_two.txt']


def test_list_keys_empty_bucket(storage):
    """Test listing an empty bucket yields nothing."""
    assert list(storage.list_keys()) == []


def test_list_keys_is_restartable(storage):
    """Test each call starts a fresh enumeration."""
    storage.put('a_one.txt', b'1')

    first = list(storage.list_keys())
    second = list(storage.list_keys())

    assert first == second == ['a_one.txt']


def test_missing_bucket_is_upstream_error(mock_s3):
    """Test failures other than a missing key map to UpstreamServiceError."""
    storage = VaultStorage(
        bucket_name='bucket-that-does-not-exist',
        region_name='us-east-1',
    )

    with pytest.raises(UpstreamServiceError):
        list(storage.list_keys())


def test_list_objects_includes_last_modified(storage):
    """Test listing with timestamps reports when each object was written."""
    before = timezone.now() - timedelta(minutes=1)
    storage.put('a_one.txt', b'1')

    objects = dict(storage.list_objects())

    assert list(objects) == ['a_one.txt']
    assert before <= objects['a_one.txt'] <= timezone.now()
