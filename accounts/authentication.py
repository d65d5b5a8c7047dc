import logging
from dataclasses import dataclass
from typing import Any, Optional

import jwt
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from accounts.tokens import decode_token

logger = logging.getLogger(__name__)


@dataclass
class TokenIdentity:
    """Caller decoded from a bearer token; stands in for request.user."""
    id: Any
    username: Optional[str]
    role: Optional[str]
    is_authenticated: bool = True
    is_anonymous: bool = False

    @property
    def pk(self):
        return self.id

    @classmethod
    def from_payload(cls, payload):
        return cls(id=payload.get('id'), username=payload.get('username'), role=payload.get('role'))


class JWTAuthentication(BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header.')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token encoding.')

        try:
            payload = decode_token(token)
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token expired.')
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected bearer token: {e}")
            raise exceptions.AuthenticationFailed('Invalid or expired token.')

        return TokenIdentity.from_payload(payload), token

    def authenticate_header(self, request):
        return self.keyword
