"""Parameter Store access for deployment secrets.

The Stripe keys and the routing digest key are SecureString parameters under
``/paygate/<environment>/``. Values are cached for the life of the process,
which for Lambda means one warm container.
"""

from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

from paygate.utils.logging import get_logger

logger = get_logger(__name__)


class SSMServiceError(Exception):
    """A parameter could not be read."""


class SSMService:
    """Reads decrypted SecureString parameters, caching them per process."""

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self, region_name: str | None = None) -> None:
        self._client = boto3.client("ssm", region_name=region_name)

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value of ``name``.

        Raises:
            SSMServiceError: The parameter is missing or unreadable.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        logger.info("Reading SSM parameter %s", name)
        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            reason = {
                "ParameterNotFound": "not found",
                "AccessDeniedException": "access denied (check ssm:GetParameter and kms:Decrypt)",
            }.get(code, str(e))
            raise SSMServiceError(f"SSM parameter {name}: {reason}") from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        return value

    def clear_cache(self) -> None:
        self._cache.clear()
