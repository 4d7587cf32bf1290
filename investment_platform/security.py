"""
Bearer token issuance and verification (JWT, HS256 by default)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from .config import PlatformConfig, get_config
from .errors import NotAuthorizedError


def create_access_token(user_id: str, role: str,
                        config: Optional[PlatformConfig] = None) -> str:
    """Sign a token carrying the user id and role"""
    config = config or get_config()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=config.jwt_expiry_hours),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_access_token(token: str,
                        config: Optional[PlatformConfig] = None) -> Dict[str, Any]:
    """Validate a token and return its claims"""
    config = config or get_config()
    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise NotAuthorizedError("Token expired")
    except jwt.InvalidTokenError:
        raise NotAuthorizedError("Not authorized, token failed")

    if not payload.get("sub"):
        raise NotAuthorizedError("Not authorized, token failed")
    return payload
