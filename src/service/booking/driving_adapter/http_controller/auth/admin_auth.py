"""
Admin Authentication

A single shared admin password; a successful login is turned into a signed JWT kept in
an HttpOnly cookie. Only the "is this caller the admin" decision is made here.
"""

from datetime import datetime, timedelta, timezone
import secrets
from typing import Dict, Optional

import jwt

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import AuthenticationError, UnauthorizedError


ADMIN_COOKIE_NAME = 'admin_token'
ADMIN_ROLE = 'admin'


class AdminJwtAuth:
    def __init__(self) -> None:
        self.secret = settings.SECRET_KEY.get_secret_value()
        self.algorithm = settings.ALGORITHM
        self.admin_password = settings.ADMIN_PASSWORD.get_secret_value()
        self.token_expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def verify_password(self, password: str) -> None:
        if not secrets.compare_digest(password.encode(), self.admin_password.encode()):
            raise AuthenticationError('Invalid admin password')

    def create_jwt_token(self) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            'sub': ADMIN_ROLE,
            'role': ADMIN_ROLE,
            'iat': now,
            'exp': now + timedelta(minutes=self.token_expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict:
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            raise UnauthorizedError('Invalid token')

    def is_admin(self, token: Optional[str]) -> bool:
        if not token:
            return False
        try:
            return self.decode_jwt_token(token).get('role') == ADMIN_ROLE
        except UnauthorizedError:
            return False


