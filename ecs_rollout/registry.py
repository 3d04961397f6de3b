"""
ECR registry authentication.
"""

import base64
import binascii
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ecs_rollout.exceptions import MalformedObjectError, RemoteCallError
from ecs_rollout.utils import get_logger


@dataclass(frozen=True)
class RegistryCredentials:
    """
    Docker login credentials for a registry.
    """

    username: str
    password: str
    endpoint: str

    def __repr__(self) -> str:
        return (
            f"RegistryCredentials(username={self.username!r}, password='***', "
            f"endpoint={self.endpoint!r})"
        )


class RegistryClient:
    """
    ECR client with encapsulated API access.
    """

    def __init__(self, region: str | None = None, client=None):
        self._ecr = client or boto3.client("ecr", region_name=region or None)
        self._logger = get_logger(__name__)

    def get_credentials(self) -> RegistryCredentials:
        """
        Get temporary docker credentials for the account's default registry.

        Returns:
            RegistryCredentials: Username, password and registry endpoint

        Raises:
            RemoteCallError: If the token cannot be fetched
            MalformedObjectError: If the token cannot be decoded
        """

        self._logger.debug("Requesting ECR authorization token")

        try:
            response = self._ecr.get_authorization_token()
        except (ClientError, BotoCoreError) as e:
            raise RemoteCallError(
                f"Failed to get ECR authorization token: {e}",
                operation="get_authorization_token",
                resource="ecr",
            ) from e

        try:
            data = response["authorizationData"][0]
            token = base64.b64decode(data["authorizationToken"]).decode("utf-8")
            username, password = token.split(":", 1)
        except (KeyError, IndexError, ValueError, binascii.Error) as e:
            raise MalformedObjectError(f"Unexpected ECR authorization token: {e}") from e

        return RegistryCredentials(
            username=username, password=password, endpoint=data["proxyEndpoint"]
        )
