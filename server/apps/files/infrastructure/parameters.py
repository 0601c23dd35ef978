"""Startup configuration sourced from AWS parameter and secret stores."""

import json
import logging
from typing import final

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from django.core.exceptions import ImproperlyConfigured

from server.apps.files.exceptions import KeyResolutionError

logger = logging.getLogger(__name__)


@final
class ParameterProvider:
    """Reads configuration values from SSM Parameter Store and Secrets Manager.

    Values are fetched on demand; callers resolve them once at startup
    and keep the result for the process lifetime.
    """

    def __init__(
        self,
        ssm_client: BaseClient,
        secrets_client: BaseClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            ssm_client: boto3 SSM client.
            secrets_client: boto3 Secrets Manager client, required only
                for ``load_secret``.
        """
        self._ssm = ssm_client
        self._secrets = secrets_client

    def resolve_key_id(self, parameter_name: str) -> str:
        """Fetch the KMS key identifier from Parameter Store.

        Args:
            parameter_name: SSM parameter holding the key id.

        Returns:
            KMS key identifier.

        Raises:
            KeyResolutionError: If the parameter is missing, empty or
                cannot be read.
        """
        try:
            response = self._ssm.get_parameter(
                Name=parameter_name,
                WithDecryption=True,
            )
        except (BotoCoreError, ClientError) as error:
            logger.exception(
                'Failed to fetch KMS key id from parameter store: %s',
                parameter_name,
            )
            raise KeyResolutionError(
                f'Failed to fetch KMS key id from parameter {parameter_name}',
            ) from error

        key_id = response['Parameter']['Value'].strip()
        if not key_id:
            raise KeyResolutionError(
                f'Parameter {parameter_name} holds an empty KMS key id',
            )

        logger.info(
            'Successfully fetched KMS key id from parameter store: %s',
            parameter_name,
        )
        return key_id

    def load_secret(self, secret_name: str) -> dict[str, str]:
        """Fetch and parse a JSON object secret.

        Args:
            secret_name: Secrets Manager secret id.

        Returns:
            Secret fields as strings.

        Raises:
            ImproperlyConfigured: If no secrets client was given, or the
                secret cannot be read or is not a JSON object.
        """
        if self._secrets is None:
            raise ImproperlyConfigured(
                'Secrets Manager client is required to load secrets',
            )

        try:
            response = self._secrets.get_secret_value(SecretId=secret_name)
        except (BotoCoreError, ClientError) as error:
            logger.exception('Error retrieving secret: %s', secret_name)
            raise ImproperlyConfigured(
                f'Failed to retrieve secret {secret_name}',
            ) from error

        try:
            payload = json.loads(response.get('SecretString') or '')
        except json.JSONDecodeError as error:
            logger.exception('Failed to parse secret: %s', secret_name)
            raise ImproperlyConfigured(
                f'Secret {secret_name} is not valid JSON',
            ) from error

        if not isinstance(payload, dict):
            raise ImproperlyConfigured(
                f'Secret {secret_name} must be a JSON object',
            )

        logger.info('Successfully loaded secret: %s', secret_name)
        return {key: str(value) for key, value in payload.items()}
