from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from django.conf import settings


def issue_token(subject_id: Any, username: str, role: str) -> str:
    """Signed bearer token carrying the caller's id, username and role."""
    now = datetime.now(timezone.utc)
    payload = {
        'id': subject_id,
        'username': username,
        'role': role,
        'iat': now,
        'exp': now + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError on bad tokens."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
