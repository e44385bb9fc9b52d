"""
Session state: the stored bearer token and the signed-in user.

The token is persisted in a small JSON "local storage" file under a fixed key
so a console restart keeps the user signed in.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from rentdesk.config import settings
from rentdesk.schemas import User
from rentdesk.services.errors import ApiError, ClientValidationError

logger = logging.getLogger(__name__)


class TokenStore:
    """File-backed key/value storage"""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.token_file)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read session storage {self.path}: {e}")
            return {}

    def _write(self, data: Dict[str, Any]):
        os.makedirs(self.path.parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    def set(self, key: str, value: Any):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class MemoryTokenStore(TokenStore):
    """Storage that lives only as long as the process (forwarded tokens, tests)"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.path = None
        self._data: Dict[str, Any] = dict(initial or {})

    def _read(self) -> Dict[str, Any]:
        return dict(self._data)

    def _write(self, data: Dict[str, Any]):
        self._data = dict(data)


class Session:
    """
    Explicit per-client session context.

    The API client reads the bearer token from here on every request instead
    of from a process-wide default header map.
    """

    def __init__(self, store: Optional[TokenStore] = None, token_key: Optional[str] = None):
        self.store = store or TokenStore()
        self.token_key = token_key or settings.token_key
        self.token: Optional[str] = self.store.get(self.token_key)
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def start(self, token: str, user: Optional[User] = None):
        self.token = token
        self.user = user
        self.store.set(self.token_key, token)

    def clear(self):
        self.token = None
        self.user = None
        self.store.remove(self.token_key)


class AuthService:
    """Login, registration and profile calls against /auth"""

    def __init__(self, client):
        self.client = client

    @property
    def session(self) -> Session:
        return self.client.session

    async def login(self, username: str, password: str) -> User:
        if not username or not password:
            raise ClientValidationError("Enter both username and password.")
        # bad credentials answer 401 too; that must not expire the session
        data = await self.client.post(
            "/auth/login",
            json={"username": username, "password": password},
            guard_session=False
        )
        user = User(**(data.get("user") or {}))
        self.session.start(data["token"], user)
        logger.info(f"Signed in as {user.username}")
        return user

    async def register(self, user_data: Dict[str, Any]) -> User:
        if user_data.get("password") != user_data.get("confirm_password", user_data.get("password")):
            raise ClientValidationError("Passwords do not match.", field="confirm_password")
        payload = {k: v for k, v in user_data.items() if k != "confirm_password"}
        data = await self.client.post("/auth/register", json=payload)
        user = User(**(data.get("user") or {}))
        self.session.start(data["token"], user)
        return user

    async def load_profile(self) -> Optional[User]:
        """Verify the stored token; a token the backend rejects is discarded"""
        if not self.session.token:
            return None
        try:
            data = await self.client.get("/auth/profile")
        except ApiError as e:
            logger.error(f"Token verification failed: {e}")
            self.session.clear()
            return None
        self.session.user = User(**(data.get("user") or {}))
        return self.session.user

    def logout(self):
        self.session.clear()
        logger.info("Signed out")
