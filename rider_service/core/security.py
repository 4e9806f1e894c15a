# rider_service/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from rider_service.core.config import get_settings
from rider_service.models.enums import PartyRole


def create_access_token(
    user_id: str,
    role: PartyRole,
    display_name: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Tokens are normally minted by the marketplace's auth service; this helper
    produces the same claim set for local runs and tests.
    """
    settings = get_settings()
    exp_minutes = expires_minutes or settings.jwt_access_token_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "user_id": user_id,
        "role": PartyRole(role).value,
        "display_name": display_name or user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
