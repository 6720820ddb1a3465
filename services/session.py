"""
Session resolution: find the caller's token and turn it into a SessionUser.

Tokens are read from the ``access_token`` cookie, falling back to an
``Authorization: Bearer`` header. Signed tokens are Cognito access tokens
verified against the user pool JWKS. While demo mode is on, an unsigned
token (base64 JSON, no ``.``) is accepted as a demo session.
"""

import base64
import binascii
import json
import time
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from pydantic import ValidationError

from models.session import SessionUser
from utils.cookies import COOKIE_ACCESS
from utils.logging import setup_logger
from utils.rpc import RpcError

from .permissions import get_user_permissions

logger = setup_logger(__name__)

DEMO_TOKEN_TTL_SECONDS = 3600


def extract_token_from_header(authorization_header: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    Args:
        authorization_header: The Authorization header value

    Returns:
        The token if the header is a Bearer credential, None otherwise
    """
    if not authorization_header:
        return None

    parts = authorization_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def extract_token(ctx: Any) -> Optional[str]:
    """Return the request's access token: cookie first, then Bearer header."""
    return ctx.cookies.get(COOKIE_ACCESS) or extract_token_from_header(
        ctx.authorization
    )


def _session_user(claims: Dict[str, Any], token: str) -> SessionUser:
    user_id = claims["sub"]
    role_name, permissions = get_user_permissions(user_id)
    return SessionUser(
        team_id=user_id,
        user_id=user_id,
        email=claims.get("email"),
        username=claims.get("cognito:username") or claims.get("username"),
        role_name=role_name,
        permissions=permissions,
        claims={**claims, "access_token": token},
    )


class DemoTokenValidator:
    """Issues and validates the unsigned demo tokens used in demo mode."""

    def issue(
        self, user_id: str, email: str, ttl: int = DEMO_TOKEN_TTL_SECONDS
    ) -> str:
        now = int(time.time())
        payload = {"sub": user_id, "email": email, "iat": now, "exp": now + ttl}
        return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            padded = token + "=" * (-len(token) % 4)
            payload = json.loads(base64.b64decode(padded).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise RpcError("UNAUTHORIZED", "Invalid demo token", cause=e)

        if not isinstance(payload, dict) or not isinstance(payload.get("sub"), str):
            raise RpcError("UNAUTHORIZED", "Invalid demo token")
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float, type(None))):
            raise RpcError("UNAUTHORIZED", "Invalid demo token")
        if not payload["sub"]:
            raise RpcError("UNAUTHORIZED", "Invalid demo token")
        return payload

    def validate(self, token: str) -> SessionUser:
        payload = self.decode(token)

        exp = payload.get("exp")
        if exp is not None and exp < time.time():
            raise RpcError("UNAUTHORIZED", "Token expired")

        try:
            user = _session_user(payload, token)
        except ValidationError as e:
            raise RpcError("UNAUTHORIZED", "Invalid demo token", cause=e)
        if not user.username:
            user.username = user.email
        return user


class CognitoTokenValidator:
    """
    Verifies Cognito access tokens.

    The JWKS client is created on first use; pass one in to avoid network
    access (tests).
    """

    def __init__(
        self,
        region: str,
        user_pool_id: Optional[str],
        client_id: Optional[str],
        jwks_client: Optional[PyJWKClient] = None,
    ):
        self.region = region
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self.issuer = f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"
        self._jwks_client = jwks_client

    @property
    def jwks_client(self) -> PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = PyJWKClient(f"{self.issuer}/.well-known/jwks.json")
        return self._jwks_client

    def validate(self, token: str) -> SessionUser:
        if not (self.user_pool_id and self.client_id):
            logger.warning("Cognito user pool not configured")
            raise RpcError(
                "UNAUTHORIZED", "Invalid or expired token: user pool not configured"
            )

        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise RpcError("UNAUTHORIZED", f"Invalid or expired token: {e}")

        if claims.get("token_use") != "access":
            raise RpcError("UNAUTHORIZED", "Invalid or expired token: not an access token")

        if (claims.get("client_id") or claims.get("aud")) != self.client_id:
            raise RpcError(
                "UNAUTHORIZED", "Invalid or expired token: issued for another client"
            )

        return _session_user(claims, token)


class SessionResolver:
    """Resolves the caller of a request context to a SessionUser."""

    def __init__(
        self,
        settings,
        cognito: CognitoTokenValidator,
        demo: Optional[DemoTokenValidator] = None,
    ):
        self.settings = settings
        self.cognito = cognito
        self.demo = demo or DemoTokenValidator()

    def validate_token(self, token: str) -> SessionUser:
        if self.settings.is_demo_mode and "." not in token:
            return self.demo.validate(token)
        return self.cognito.validate(token)

    def resolve(self, ctx: Any) -> SessionUser:
        """
        Resolve the session or raise UNAUTHORIZED.

        Args:
            ctx: RequestContext

        Returns:
            The authenticated SessionUser
        """
        token = extract_token(ctx)
        if not token:
            raise RpcError("UNAUTHORIZED", "No access token")
        return self.validate_token(token)

    def try_resolve(self, ctx: Any) -> Optional[SessionUser]:
        """Like resolve(), but returns None when there is no valid session."""
        try:
            return self.resolve(ctx)
        except RpcError as e:
            logger.debug(f"No session resolved: {e.message}")
            return None
