"""
Session check for the chat endpoint.

The login service issues HS256 JWT session tokens carrying ``username``,
``role`` and ``banned`` claims. They arrive either as an
``Authorization: Bearer`` header or in the ``auth`` cookie.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import RuntimeConfig, get_config
from errors import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
AUTH_COOKIE = "auth"
ELEVATED_ROLES = ("owner", "admin")

# Optional Bearer token extractor (doesn't auto-raise on missing)
_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthInfo:
    username: str
    role: str = "user"
    banned: bool = False


def verify_token(token: str, secret: str) -> Optional[dict]:
    """Verify a JWT token. Returns decoded payload or None."""
    if not token or not secret:
        return None
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def create_token(username: str, role: str, secret: str, banned: bool = False) -> str:
    """Issue a session token. Used by tests and local tooling."""
    return jwt.encode({"username": username, "role": role, "banned": banned}, secret, algorithm=JWT_ALGORITHM)


async def verify_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    auth: Optional[str] = Cookie(None),
) -> AuthInfo:
    """
    Auth dependency for any logged-in user.

    Checks the Bearer header first, then the ``auth`` cookie.

    Raises:
        AuthenticationError (401) if no valid session is present
    """
    token = credentials.credentials if credentials and credentials.credentials else auth
    if not token:
        raise AuthenticationError("Unauthorized", details="Authentication required")

    payload = verify_token(token, get_config().auth_secret)
    if not payload or not payload.get("username"):
        raise AuthenticationError("Unauthorized", details="Invalid or expired token", invalid_token=True)

    return AuthInfo(
        username=str(payload["username"]),
        role=str(payload.get("role") or "user"),
        banned=bool(payload.get("banned", False)),
    )


def check_chat_permission(user: AuthInfo, cfg: RuntimeConfig) -> None:
    """Restrict the chat to the site owner and admins unless regular users are allowed.

    Raises:
        PermissionDeniedError (403)
    """
    if cfg.ai_allow_regular_users:
        return
    # The site owner always has access
    if cfg.owner_username and user.username == cfg.owner_username:
        return
    if user.role in ELEVATED_ROLES and not user.banned:
        return
    logger.info(f"Chat denied for {user.username} (role={user.role}, banned={user.banned})")
    raise PermissionDeniedError(
        "该功能仅限站长和管理员使用",
        username=user.username,
        role=user.role,
    )
