"""Tests for Parameter Store and Secrets Manager lookups."""

import json

import boto3
import pytest
from django.core.exceptions import ImproperlyConfigured

from server.apps.files.exceptions import KeyResolutionError
from server.apps.files.infrastructure.parameters import ParameterProvider

_PARAMETER_NAME = '/secure-file-storage/kms-key-id'


@pytest.fixture
def ssm_client(mock_s3):
    """boto3 SSM client inside the AWS mock.

    Returns:
        SSM client.
    """
    return boto3.client('ssm', region_name='us-east-1')


@pytest.fixture
def secrets_client(mock_s3):
    """boto3 Secrets Manager client inside the AWS mock.

    Returns:
        Secrets Manager client.
    """
    return boto3.client('secretsmanager', region_name='us-east-1')


@pytest.fixture
def provider(ssm_client, secrets_client):
    """Parameter provider bound to mocked clients.

    Returns:
        ParameterProvider instance.
    """
    return ParameterProvider(ssm_client, secrets_client)


def test_resolve_key_id(provider, ssm_client):
    """Test key id is read from a SecureString parameter."""
    ssm_client.put_parameter(
        Name=_PARAMETER_NAME,
        Value='alias/secure-file-storage',
        Type='SecureString',
    )

    assert provider.resolve_key_id(_PARAMETER_NAME) == (
        'alias/secure-file-storage'
    )


def test_resolve_key_id_strips_whitespace(provider, ssm_client):
    """Test surrounding whitespace is ignored."""
    ssm_client.put_parameter(
        Name=_PARAMETER_NAME,
        Value='  alias/secure-file-storage\n',
        Type='String',
    )

    assert provider.resolve_key_id(_PARAMETER_NAME) == (
        'alias/secure-file-storage'
    )


def test_resolve_key_id_missing(provider):
    """Test a missing parameter is a startup configuration error."""
    with pytest.raises(KeyResolutionError):
        provider.resolve_key_id(_PARAMETER_NAME)


def test_resolve_key_id_blank(provider, ssm_client):
    """Test a blank parameter value is rejected."""
    ssm_client.put_parameter(Name=_PARAMETER_NAME, Value=' ', Type='String')

    with pytest.raises(KeyResolutionError, match='empty'):
        provider.resolve_key_id(_PARAMETER_NAME)


def test_key_resolution_error_is_improperly_configured():
    """Test startup code can catch it as a configuration error."""
    assert issubclass(KeyResolutionError, ImproperlyConfigured)


def test_load_secret(provider, secrets_client):
    """Test a JSON object secret is parsed."""
    secrets_client.create_secret(
        Name='storage-credentials',
        SecretString=json.dumps({
            'AWS_ACCESS_KEY_ID': 'AKIAEXAMPLE',
            'AWS_SECRET_ACCESS_KEY': 'secret',
            'PORT': 9000,
        }),
    )

    assert provider.load_secret('storage-credentials') == {
        'AWS_ACCESS_KEY_ID': 'AKIAEXAMPLE',
        'AWS_SECRET_ACCESS_KEY': 'secret',
        'PORT': '9000',
    }


def test_load_secret_missing(provider):
    """Test a missing secret raises ImproperlyConfigured."""
    with pytest.raises(ImproperlyConfigured, match='Failed to retrieve'):
        provider.load_secret('storage-credentials')


@pytest.mark.parametrize(('secret_string', 'message'), [
    ('not json', 'not valid JSON'),
    ('["a", "b"]', 'JSON object'),
])
def test_load_secret_invalid(provider, secrets_client, secret_string, message):
    """Test secrets that are not JSON objects are rejected."""
    secrets_client.create_secret(
        Name='storage-credentials',
        SecretString=secret_string,
    )

    with pytest.raises(ImproperlyConfigured, match=message):
        provider.load_secret('storage-credentials')


def test_load_secret_without_client(ssm_client):
    """Test load_secret needs a Secrets Manager client."""
    provider = ParameterProvider(ssm_client)

    with pytest.raises(ImproperlyConfigured, match='client is required'):
        provider.load_secret('storage-credentials')
