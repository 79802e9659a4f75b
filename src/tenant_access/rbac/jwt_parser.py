"""
JWT Parser - turn a bearer token into a Principal

The token is taken from the ``Authorization: Bearer`` header, falling back to
the ``authToken`` cookie, and verified with the configured secret.
"""

from typing import Any, Dict, Optional

import jwt
from flask import request

from tenant_access.rbac.errors import AuthenticationError
from tenant_access.rbac.principal import Principal
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

TOKEN_COOKIE = "authToken"


def extract_bearer_token(req=None) -> Optional[str]:
    """
    Find the raw token on a request.

    Args:
        req: Flask request (defaults to the current request)

    Returns:
        Token string or None
    """
    req = req if req is not None else request
    auth_header = req.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header[len('Bearer '):].strip()
        return token or None

    token = req.cookies.get(TOKEN_COOKIE)
    if isinstance(token, str) and token.strip():
        return token.strip()
    return None


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """
    Verify and decode a token.

    Raises:
        AuthenticationError: With a user-facing reason when verification fails
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Your session has expired. Please log in again to continue.") from exc
    except jwt.InvalidSignatureError as exc:
        raise AuthenticationError("Authentication token signature is invalid. Please log in again.") from exc
    except jwt.DecodeError as exc:
        raise AuthenticationError("Malformed authentication token. Please log in again.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Authentication token could not be verified. Please log in again.") from exc


def load_principal_from_request(secret: Optional[str], algorithm: str = "HS256", req=None) -> Principal:
    """
    Authenticate the current request.

    Returns:
        Principal built from the token claims

    Raises:
        AuthenticationError: If there is no token, no secret configured, or the
                             token does not verify
    """
    if not secret:
        raise AuthenticationError("Token verification is not configured.")

    token = extract_bearer_token(req)
    if not token:
        raise AuthenticationError("No authentication token provided. Please log in to access this resource.")

    claims = decode_token(token, secret, algorithm)
    principal = Principal.from_claims(claims)
    logger.debug(f"Authenticated {principal.kind.value} '{principal.subject}' (tenant: {principal.tenant_id})")
    return principal
