from __future__ import annotations

from typing import Any

from jose import JWTError, jwt

from helpdesk.core.config import settings


def verify_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """Decode a bearer token issued by the identity provider.

    Raises ValueError for bad signatures, expired tokens and tokens of the
    wrong type.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        if payload.get("type") != token_type:
            raise JWTError("Invalid token type")
        return payload
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
