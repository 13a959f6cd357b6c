"""
Tools for encoding, building, and decoding identity JWTs.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from groupkeeper.core.uuid import UUID, uuid7

from .cryptography import UnsupportedEncryptionMethod

REQUIRED_CLAIMS = ["exp", "iat", "nbf", "uid"]


class KeyDecodeError(Exception):
    pass


class KeyExpiredError(Exception):
    pass


def match_key_pair_type_to_pyjwt_algorithm(key_pair_type: str) -> str:
    match key_pair_type:
        case "Ed25519":
            algorithm = "EdDSA"
        case _:
            raise UnsupportedEncryptionMethod

    return algorithm


def filter_payload_item_for_serialization(p) -> Any:
    match p:
        case UUID():
            return p.hex
        case _:
            return p


def sign_payload(
    private_key: Ed25519PrivateKey,
    key_pair_type: str,
    payload: dict[str, Any],
) -> str:
    """
    Sign a JWT payload.

    Parameters
    ----------
    private_key
        The (already decrypted) private key.
    key_pair_type
        The type of key (e.g. Ed25519).
    payload
        The payload for the JWT to sign.
    """

    algorithm = match_key_pair_type_to_pyjwt_algorithm(key_pair_type=key_pair_type)

    return jwt.encode(
        payload={
            x: filter_payload_item_for_serialization(p) for x, p in payload.items()
        },
        key=private_key,
        algorithm=algorithm,
    )


def reconstruct_payload(
    webtoken: str | bytes, public_key: Ed25519PublicKey, key_pair_type: str
) -> dict[str, Any]:
    """
    Verify the signature and time claims of a JWT and return its payload.

    Raises
    ------
    KeyExpiredError
        When the token is past its expiry.
    KeyDecodeError
        For any other problem: malformed token, bad signature, missing claims,
        not yet valid.
    """

    algorithm = match_key_pair_type_to_pyjwt_algorithm(key_pair_type=key_pair_type)

    try:
        payload = jwt.decode(
            jwt=webtoken,
            key=public_key,
            algorithms=[algorithm],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise KeyExpiredError("Content of the payload has expired")
    except jwt.InvalidTokenError:
        raise KeyDecodeError("Unable to deserialize content")

    return payload


def build_payload_with_claims(
    base_payload: dict[str, Any],
    expiration_time: datetime,
    valid_from: datetime | None,
) -> dict[str, Any]:
    for a in ("exp", "nbf", "iat", "uuid"):
        if a in base_payload:
            raise ValueError(f"Base payload cannot contain key {a}")

    current_time = datetime.now(timezone.utc)

    return {
        "exp": expiration_time,
        "nbf": valid_from if valid_from is not None else current_time,
        "iat": current_time,
        "uuid": uuid7(),
        **base_payload,
    }


def build_identity_payload(account_id: UUID, validity: timedelta) -> dict[str, Any]:
    """
    Builds the payload asserting the identity of an account.
    """

    current_time = datetime.now(timezone.utc)

    return build_payload_with_claims(
        base_payload={"uid": account_id},
        expiration_time=current_time + validity,
        valid_from=current_time,
    )
