from typing import Any, Dict, Optional

import httpx
import jwt
from loguru import logger

from app.settings import settings
from models.planner import ErrorKind

INSUFFICIENT_CREDITS_MARKER = "insufficient credits"


class ApiError(Exception):
    """
    A failed backend call.

    `kind` is decided once here from the status code and body so call sites
    never re-parse status codes or message text.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        status: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message
        self.status = status
        self.field = field

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "ApiError":
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("error") or body.get("message") or "Request failed"
        status = resp.status_code

        if status == 401:
            kind = ErrorKind.UNAUTHORIZED
        elif status == 403 and INSUFFICIENT_CREDITS_MARKER in str(message).lower():
            kind = ErrorKind.INSUFFICIENT_CREDITS
        elif status == 429:
            kind = ErrorKind.RATE_LIMITED
        elif status >= 500:
            kind = ErrorKind.SERVER_ERROR
        elif status in (400, 422):
            kind = ErrorKind.VALIDATION
        else:
            kind = ErrorKind.UNKNOWN

        field = (body.get("field") or body.get("param")) if kind is ErrorKind.VALIDATION else None
        return cls(kind, str(message), status=status, field=field)


class TokenStore:
    """Holds the bearer token for one user session."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    def get(self) -> Optional[str]:
        return self._token


class ApiClient:
    """
    Thin async wrapper around the marketplace backend.

    - Attaches `Authorization: Bearer <token>` from the injected TokenStore
    - A missing token fails only the call being made
    - Maps non-2xx responses and transport errors to ApiError
    """

    def __init__(
        self,
        token_store: TokenStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.api_url
        self.token_store = token_store

        # One async client reused for all calls
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_store.get()
        if not token:
            raise ApiError(
                ErrorKind.UNAUTHORIZED,
                "Authentication token not found. Please log in again.",
            )
        return {"Authorization": f"Bearer {token}"}

    def current_user_id(self) -> str:
        """
        Read the user id from the bearer JWT's `id` claim.

        The signature is not verified here; the backend does that.
        """
        headers = self._auth_headers()
        token = headers["Authorization"].split(" ", 1)[1]
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            raise ApiError(ErrorKind.UNAUTHORIZED, "Authentication token is invalid. Please log in again.") from exc

        user_id = claims.get("id")
        if not user_id:
            raise ApiError(ErrorKind.UNAUTHORIZED, "Authentication token is invalid. Please log in again.")
        return str(user_id)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        headers = self._auth_headers()

        try:
            resp = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"[api] {method} {path} failed: {exc!r}")
            raise ApiError(ErrorKind.UNKNOWN, f"Network error: {exc}") from exc

        if resp.is_error:
            err = ApiError.from_response(resp)
            logger.warning(f"[api] {method} {path} -> {resp.status_code} ({err.kind.value}): {err.message}")
            raise err

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ApiError(ErrorKind.UNKNOWN, "Invalid response from server", status=resp.status_code) from exc
        return payload if isinstance(payload, dict) else {"data": payload}

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Authenticated GET; `path` may also be an absolute URL."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", path, json=json)
