"""
HTTP client for the rental backend.

Wraps httpx.AsyncClient with the backend base URL, bearer-token injection from
an explicit Session, a bounded retry policy for idempotent requests and the
centralized 401/403/5xx handling shared by every view.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from rentdesk.config import settings
from rentdesk.navigation import Navigator
from rentdesk.services.errors import (
    ApiError, NetworkError, PermissionDeniedError, SessionExpiredError, error_for_status
)
from rentdesk.services.session import Session

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}


class ApiClient:
    """Authenticated JSON client; one instance per signed-in console"""

    def __init__(
        self,
        session: Optional[Session] = None,
        navigator: Optional[Navigator] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        expire_on_unauthorized: bool = True
    ):
        self.session = session or Session()
        self.navigator = navigator or Navigator()
        self.base_url = (base_url or settings.base_url).rstrip('/')
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_backoff = settings.retry_backoff_seconds if retry_backoff is None else retry_backoff
        self.retry_status_codes = set(settings.retry_status_codes)
        # a forwarding client (document endpoint) reports 401 without redirecting anywhere
        self.expire_on_unauthorized = expire_on_unauthorized
        self.default_headers: Dict[str, str] = {"Accept": "application/json"}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {**self.default_headers, **self.session.auth_headers}

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code >= 500 or status_code in self.retry_status_codes

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Any = None,
        guard_session: bool = True
    ) -> httpx.Response:
        """
        Issue one logical request and return the successful response.

        Idempotent methods are attempted at most 1 + max_retries times on
        timeouts, transport failures, 5xx and the configured extra status
        codes, with a fixed backoff between attempts. Everything else is
        attempted once.
        """
        method = method.upper()
        retries = self.max_retries if method in IDEMPOTENT_METHODS else 0
        attempt = 0

        while True:
            attempt += 1
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    data=data,
                    files=files,
                    headers=self._headers()
                )
            except httpx.TransportError as e:
                if attempt <= retries:
                    logger.warning(f"{method} {path} failed ({e.__class__.__name__}), retry {attempt}/{retries}")
                    await asyncio.sleep(self.retry_backoff)
                    continue
                logger.error(f"{method} {path} got no response after {attempt} attempt(s): {e}")
                raise NetworkError() from e

            if response.status_code < 400:
                return response

            if self._is_retryable_status(response.status_code) and attempt <= retries:
                logger.warning(f"{method} {path} returned {response.status_code}, retry {attempt}/{retries}")
                await asyncio.sleep(self.retry_backoff)
                continue

            raise self._error_from_response(method, path, response, guard_session)

    def _error_from_response(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        guard_session: bool
    ) -> ApiError:
        payload = self._decode(response)
        error = error_for_status(response.status_code, payload)

        if isinstance(error, SessionExpiredError):
            if not guard_session:
                return ApiError(payload.get("message"), status_code=401, payload=payload)
            if self.expire_on_unauthorized:
                self._expire_session()
        elif isinstance(error, PermissionDeniedError):
            logger.warning(f"{method} {path} denied (403)")

        logger.error(f"{method} {path} failed with {response.status_code}: {error.message}")
        return error

    def _expire_session(self):
        """Drop the stored token and send the user to the login route after a fixed delay"""
        logger.warning("Unauthorized response, clearing the session")
        self.session.clear()
        login_route = settings.login_route
        if not self.navigator.is_at(login_route):
            self.navigator.navigate_later(login_route, settings.session_expired_redirect_delay)

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {"message": response.text} if response.status_code >= 400 else {}
        if isinstance(data, dict):
            return data
        return {"data": data}

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._decode(await self.send("GET", path, params=params))

    async def post(self, path: str, json: Any = None, guard_session: bool = True) -> Dict[str, Any]:
        return self._decode(await self.send("POST", path, json=json, guard_session=guard_session))

    async def put(self, path: str, json: Any = None) -> Dict[str, Any]:
        return self._decode(await self.send("PUT", path, json=json))

    async def delete(self, path: str, json: Any = None) -> Dict[str, Any]:
        return self._decode(await self.send("DELETE", path, json=json))

    async def upload(
        self,
        method: str,
        path: str,
        files: Any,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Multipart form request (equipment photo, Excel import)"""
        return self._decode(await self.send(method, path, data=data, files=files))

    async def get_bytes(self, path: str, params: Optional[Dict[str, Any]] = None) -> bytes:
        response = await self.send("GET", path, params=params)
        return response.content
