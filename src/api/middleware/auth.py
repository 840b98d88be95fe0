"""JWT authentication middleware and utilities."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from src.core.config import get_settings
from src.schemas.auth import TokenPayload


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Authentication error with specific error code.

    Raised when JWT validation fails for any reason.
    The error code indicates the specific failure reason.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache
def get_signing_key() -> Any:
    """Load the public key from the signing key JWK environment variable.

    Returns:
        Public key for ES256 verification.
    """
    settings = get_settings()
    jwk_json = settings.supabase_signing_key_jwk

    if not jwk_json:
        raise AuthError(
            "Signing key not configured",
            AuthErrorCode.INVALID_TOKEN,
        )

    try:
        jwk_data = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise AuthError(
            f"Invalid signing key JWK format: {e}",
            AuthErrorCode.INVALID_TOKEN,
        )

    jwk = PyJWK.from_dict(jwk_data)
    return jwk.key


def get_verification_key() -> tuple[Any, list[str]]:
    """Pick the key and algorithm used to verify access tokens.

    An asymmetric signing key takes precedence; projects still on the
    shared-secret scheme fall back to HS256.

    Returns:
        Tuple of (key, allowed algorithms).

    Raises:
        AuthError: If neither key is configured.
    """
    settings = get_settings()
    if settings.supabase_signing_key_jwk:
        return get_signing_key(), ["ES256"]
    if settings.supabase_jwt_secret:
        return settings.supabase_jwt_secret, ["HS256"]
    raise AuthError("Token verification key not configured", AuthErrorCode.INVALID_TOKEN)


def decode_jwt(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Validates the token signature, expiration, and structure.

    Args:
        token: The JWT token string to decode.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If token is invalid, expired, or has wrong signature.
    """
    try:
        key, algorithms = get_verification_key()

        payload: dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "verify_aud": False,
                "require": ["exp", "iat", "sub"],
            },
        )

        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload["iat"],
            aud=payload.get("aud") if isinstance(payload.get("aud"), str) else None,
            iss=payload.get("iss"),
            user_metadata=payload.get("user_metadata"),
        )

    except AuthError:
        raise

    except jwt.ExpiredSignatureError as e:
        raise AuthError(
            "Token has expired",
            AuthErrorCode.TOKEN_EXPIRED,
        ) from e

    except jwt.InvalidSignatureError as e:
        raise AuthError(
            "Invalid token signature",
            AuthErrorCode.INVALID_SIGNATURE,
        ) from e

    except jwt.DecodeError as e:
        raise AuthError(
            f"Invalid token format: {e}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    except jwt.MissingRequiredClaimError as e:
        raise AuthError(
            f"Token missing required claim: {e}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    except Exception as e:
        raise AuthError(
            f"Token validation failed: {e}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e
