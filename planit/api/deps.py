from datetime import datetime, timezone
from typing import Any, cast

from fastapi import Depends, Header
from jose import JWTError, jwt

from planit.config import settings
from planit.db import get_db
from planit.errors import AuthenticationRequired
from planit.services.signature_capture import SignerIdentity


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def decode_identity_token(token: str) -> SignerIdentity:
    """Turn an identity-provider JWT into a signer identity.

    Raises:
        AuthenticationRequired: If the token is invalid, expired or has no subject
    """
    try:
        settings.validate_jwt_config()
    except ValueError as exc:
        raise AuthenticationRequired("Token verification is not configured") from exc
    try:
        payload = cast(
            dict[Any, Any],
            jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]),
        )
    except JWTError as exc:
        raise AuthenticationRequired("Invalid or expired token") from exc
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationRequired("Token has no subject")
    exp = payload.get("exp")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None
    return SignerIdentity(
        signer_id=str(subject),
        name=payload.get("name"),
        email=payload.get("email"),
        token=token,
        expires_at=expires_at,
    )


def get_optional_identity(
    authorization: str | None = Header(default=None),
) -> SignerIdentity | None:
    token = _extract_bearer_token(authorization)
    if not token:
        return None
    return decode_identity_token(token)


def get_signer_identity(
    identity: SignerIdentity | None = Depends(get_optional_identity),
) -> SignerIdentity:
    if identity is None:
        raise AuthenticationRequired("User must be authenticated to sign")
    return identity


def actor_of(identity: SignerIdentity | None) -> str | None:
    if identity is None:
        return None
    return identity.email or identity.signer_id


__all__ = [
    "actor_of",
    "decode_identity_token",
    "get_db",
    "get_optional_identity",
    "get_signer_identity",
]
