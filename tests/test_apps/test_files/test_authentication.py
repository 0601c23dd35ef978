"""Tests for Basic auth header parsing."""

import base64

import pytest

from server.apps.files.authentication import parse_basic_auth


def _encode(value):
    return base64.b64encode(value.encode()).decode()


def test_parse_basic_auth():
    """Test a well-formed header is decoded."""
    header = f'Basic {_encode("alice:s3cret")}'

    assert parse_basic_auth(header) == ('alice', 's3cret')


def test_password_may_contain_colon():
    """Test only the first colon separates username and password."""
    header = f'basic {_encode("alice:a:b")}'

    assert parse_basic_auth(header) == ('alice', 'a:b')


@pytest.mark.parametrize('header', [
    '',
    'Basic',
    'Bearer token',
    'Basic not-base64!',
    f'Basic {_encode("no-separator")}',
    f'Basic {_encode(":password")}',
])
def test_parse_basic_auth_invalid(header):
    """Test malformed headers are ignored."""
    assert parse_basic_auth(header) is None
