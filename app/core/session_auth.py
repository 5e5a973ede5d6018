import hashlib
import hmac
import urllib.parse
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from fastapi import HTTPException, status

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SESSION_ROLES = ("ADMIN", "COACH", "PLAYER")


class SessionAuthError(Exception):
    """Custom exception for session token errors"""

    def __init__(self, message: str, error_code: str = "AUTH_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class SessionAuth:
    """
    Проверка сессионных токенов, выданных внешним auth-сервисом.

    Токен это query string вида
    ``user_id=1&role=ADMIN&auth_date=1700000000&hash=<hex>``,
    где hash это HMAC-SHA256 от отсортированных пар ``key=value``,
    склеенных через перевод строки.
    """

    def __init__(self, secret: str, max_age_seconds: int = 86400):
        if not secret:
            raise ValidationError("Session secret is required")
        self.secret = secret
        self.max_age_seconds = max_age_seconds
        self.secret_key = hmac.new(
            b"SessionData", secret.encode(), hashlib.sha256
        ).digest()

    def _signature(self, params: Dict[str, str]) -> str:
        data_check_string = "\n".join(f"{k}={params[k]}" for k in sorted(params))
        return hmac.new(
            self.secret_key, data_check_string.encode(), hashlib.sha256
        ).hexdigest()

    def issue(
        self, user_id: int, role: str, auth_date: Optional[int] = None
    ) -> str:
        """Собрать подписанный токен (используется auth-сервисом и в тестах)"""
        if auth_date is None:
            auth_date = int(datetime.now(timezone.utc).timestamp())
        params = {"user_id": str(user_id), "role": role, "auth_date": str(auth_date)}
        params["hash"] = self._signature(params)
        return urllib.parse.urlencode(params)

    def validate_auth_date(self, auth_date: str) -> bool:
        """Validate that auth_date is not too old"""
        try:
            if not auth_date:
                return False

            auth_timestamp = int(auth_date)
            current_timestamp = int(datetime.now(timezone.utc).timestamp())

            return current_timestamp - auth_timestamp <= self.max_age_seconds
        except (ValueError, TypeError):
            return False

    def validate_token(self, raw_token: str) -> Dict[str, str]:
        """Check the signature and return parsed params"""
        if not raw_token or not raw_token.strip():
            raise SessionAuthError("Empty session token", "EMPTY_DATA")

        params = dict(urllib.parse.parse_qsl(raw_token, keep_blank_values=False))

        their_hash = params.pop("hash", None)
        if not their_hash:
            raise SessionAuthError("Hash parameter missing", "NO_HASH")

        if not hmac.compare_digest(self._signature(params), their_hash):
            raise SessionAuthError("Session signature mismatch", "INVALID_HASH")

        return params

    def authenticate(self, token: str) -> Dict[str, Any]:
        """
        Full authentication process with secure error handling
        """
        try:
            parsed = self.validate_token(token)

            if "auth_date" not in parsed:
                raise SessionAuthError("Session timestamp missing", "NO_AUTH_DATE")

            if not self.validate_auth_date(parsed["auth_date"]):
                raise SessionAuthError("Session expired", "EXPIRED_AUTH")

            try:
                user_id = int(parsed.get("user_id", ""))
            except ValueError:
                raise SessionAuthError("Invalid user id", "INVALID_USER_DATA")

            role = parsed.get("role")
            if role not in SESSION_ROLES:
                raise SessionAuthError("Invalid role", "INVALID_USER_DATA")

            return {"user_id": user_id, "role": role}

        except SessionAuthError as e:
            logger.warning(f"Session auth failed with code: {e.error_code}")
            # Клиенту всегда отдаем общий ответ
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication failed",
                headers={"WWW-Authenticate": "Bearer"},
            )
