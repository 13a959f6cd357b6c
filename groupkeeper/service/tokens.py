"""
Identity tokens. A token is the only way an account identity enters the
service: it is read from the call metadata, verified against our public key,
and reduced to the account id it asserts.
"""

from collections.abc import Mapping
from datetime import timedelta

from pydantic import BaseModel, ValidationError
from structlog import get_logger

from groupkeeper.config.settings import Settings
from groupkeeper.core.cryptography import deserialize_private_key
from groupkeeper.core.errors import Unauthenticated
from groupkeeper.core.tokens import (
    KeyDecodeError,
    KeyExpiredError,
    build_identity_payload,
    reconstruct_payload,
    sign_payload,
)
from groupkeeper.core.uuid import UUID

# The metadata key which must carry the bearer token.
AUTHORIZATION_METADATA_KEY = "authorization"
AUTHORIZATION_SCHEME = "Bearer"

DEFAULT_TOKEN_EXPIRY = timedelta(hours=24)


class IdentityClaims(BaseModel):
    uid: UUID


def token_from_metadata(metadata: Mapping[str, str]) -> str | None:
    """
    Extract the token from an `authorization: Bearer <token>` entry. The key is
    matched case-insensitively. Returns None if there is no usable entry.
    """
    for key, value in metadata.items():
        if key.lower() != AUTHORIZATION_METADATA_KEY:
            continue

        words = value.split(" ")
        if len(words) == 2 and words[0] == AUTHORIZATION_SCHEME and words[1]:
            return words[1]

    return None


class TokenService:
    """
    Issues and verifies EdDSA-signed identity tokens. The private key is
    decrypted once at construction; verification only uses the public half and
    keeps no state, so a single instance may be shared by every request.
    """

    key_pair_type: str
    expiry: timedelta

    def __init__(
        self,
        private_key: bytes,
        key_password: str,
        key_pair_type: str = "Ed25519",
        expiry: timedelta = DEFAULT_TOKEN_EXPIRY,
    ):
        self.key_pair_type = key_pair_type
        self.expiry = expiry
        self._private_key = deserialize_private_key(
            private_key=private_key,
            key_password=key_password,
            key_pair_type=key_pair_type,
        )
        self._public_key = self._private_key.public_key()

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            private_key=settings.signing_key(),
            key_password=settings.key_password.get_secret_value(),
            key_pair_type=settings.key_pair_type,
            expiry=settings.token_expiry,
        )

    def __repr__(self) -> str:
        return f"TokenService(key_pair_type={self.key_pair_type!r}, expiry={self.expiry!r})"

    def issue_token(self, account_id: UUID) -> str:
        """
        Sign a token asserting `account_id`, valid from now until now + expiry.
        """
        payload = build_identity_payload(account_id=account_id, validity=self.expiry)

        return sign_payload(
            private_key=self._private_key,
            key_pair_type=self.key_pair_type,
            payload=payload,
        )

    def verify_token(self, metadata: Mapping[str, str]) -> UUID:
        """
        Verify the token carried by the call metadata and return the account id
        it asserts.

        Raises
        ------
        Unauthenticated
            If the token is missing, malformed, wrongly signed or expired. The
            cause is deliberately not part of the error.
        """
        log = get_logger()

        token = token_from_metadata(metadata)

        if token is None:
            log.debug("token.missing")
            raise Unauthenticated("Invalid token")

        try:
            payload = reconstruct_payload(
                webtoken=token,
                public_key=self._public_key,
                key_pair_type=self.key_pair_type,
            )
            claims = IdentityClaims.model_validate(payload)
        except KeyExpiredError:
            log.debug("token.expired")
            raise Unauthenticated("Invalid token")
        except (KeyDecodeError, ValidationError):
            log.debug("token.invalid")
            raise Unauthenticated("Invalid token")

        return claims.uid

    def attach_token(self, metadata: Mapping[str, str], token: str) -> dict[str, str]:
        """
        Metadata for a downstream call, carrying `token` unchanged in place of
        any authorization entry already present.
        """
        forwarded = {
            key: value
            for key, value in metadata.items()
            if key.lower() != AUTHORIZATION_METADATA_KEY
        }
        forwarded[AUTHORIZATION_METADATA_KEY] = f"{AUTHORIZATION_SCHEME} {token}"
        return forwarded
