"""At-rest protection for bot tokens and routing secrets.

Secrets are encrypted with KMS for storage. Lookups never decrypt: each
secret also gets a deterministic keyed digest (HMAC-SHA256), so a routing
secret arriving in a request header can be matched with a single index query.
"""

import base64
import hashlib
import hmac
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class SecretCipherError(Exception):
    """Raised when a secret cannot be encrypted or decrypted."""

    pass


class SecretCipher:
    """KMS envelope for tenant secrets plus deterministic lookup digests."""

    def __init__(
        self,
        kms_key_id: str,
        digest_key: str,
        region_name: str | None = None,
    ) -> None:
        """Initialize the cipher.

        Args:
            kms_key_id: KMS key ID, ARN or alias used for encryption.
            digest_key: HMAC key for lookup digests.
            region_name: AWS region for the KMS client.
        """
        self._kms_key_id = kms_key_id
        self._digest_key = digest_key.encode("utf-8")
        self._kms = boto3.client("kms", region_name=region_name)

    def digest(self, value: str) -> str:
        """Deterministic keyed digest used as a lookup / uniqueness key."""
        return hmac.new(self._digest_key, value.encode("utf-8"), hashlib.sha256).hexdigest()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret for storage.

        Returns:
            Base64-encoded KMS ciphertext blob.

        Raises:
            SecretCipherError: If KMS rejects the request.
        """
        try:
            response = self._kms.encrypt(
                KeyId=self._kms_key_id,
                Plaintext=plaintext.encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise SecretCipherError(f"Failed to encrypt secret: {e}") from e
        return base64.b64encode(response["CiphertextBlob"]).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored secret.

        Raises:
            SecretCipherError: If the blob is invalid or KMS rejects it.
        """
        try:
            response = self._kms.decrypt(CiphertextBlob=base64.b64decode(ciphertext))
        except (ClientError, BotoCoreError, ValueError) as e:
            raise SecretCipherError(f"Failed to decrypt secret: {e}") from e
        return response["Plaintext"].decode("utf-8")
