"""
ContestHub REST API client.

Wraps the external ContestHub server (auth, contests, registration,
submissions, winners, users, packages and payment intents). The client
also owns the auth session: the logged-in user record and its bearer token.

Base URL comes from Settings (CONTESTHUB_API_URL / VITE_API_URL).
"""

import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from .config import Settings, load_settings
from .validation import (
    ContestInput,
    ContestUpdate,
    InputSanitizer,
    LoginInput,
    ProfileUpdate,
    RegisterInput,
    RoleUpdate,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the ContestHub API."""

    def __init__(self, status: int, message: str, data: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


@dataclass
class AuthSession:
    """Current user and token, shared by every request the client makes."""

    user: dict | None = None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    @property
    def is_admin(self) -> bool:
        return bool(self.user) and self.user.get("role") == "admin"

    @property
    def is_creator(self) -> bool:
        return bool(self.user) and self.user.get("role") == "creator"

    def set_user(self, data: dict, token: str | None = None) -> None:
        self.user = data
        self.token = token or data.get("token") or self.token

    def merge_user(self, data: dict) -> None:
        self.user = {**(self.user or {}), **data}

    def clear(self) -> None:
        self.user = None
        self.token = None


class ContestHubClient:
    """Async client for the ContestHub REST API."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: AuthSession | None = None,
        http: aiohttp.ClientSession | None = None,
    ):
        """Initialize client.

        Args:
            settings: API settings. If None, read from the environment.
            session: Auth session to reuse; a fresh anonymous one by default.
            http: Externally managed aiohttp session (not closed by close()).
        """
        self.settings = settings or load_settings()
        self.session = session or AuthSession()
        self._http = http
        self._owns_http = http is None

    async def __aenter__(self) -> "ContestHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http and self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None if self._owns_http else self._http

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout)
            )
            self._owns_http = True
        return self._http

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = token or self.session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        token: str | None = None,
    ) -> Any:
        """Make a request and return the decoded body.

        Raises:
            ApiError: on any non-2xx status, with the server's message when given
            aiohttp.ClientError: on connection failures
        """
        url = f"{self.settings.api_url}/{path.lstrip('/')}"
        http = self._get_http()
        async with http.request(
            method, url, headers=self._headers(token), json=json, params=params
        ) as response:
            if response.content_type == "application/json":
                data = await response.json()
            else:
                data = await response.text()

            if response.status >= 400:
                message = None
                if isinstance(data, dict):
                    message = data.get("message") or data.get("error")
                message = message or response.reason or "Request failed"
                logger.warning(f"{method} {path} failed: {response.status} {message}")
                raise ApiError(response.status, message, data)

            logger.debug(f"{method} {path} -> {response.status}")
            return data

    # ==================== AUTH ====================

    async def login(self, email: str, password: str) -> dict:
        body = LoginInput(email=email, password=password).model_dump()
        data = await self._request("POST", "/auth/login", json=body)
        self.session.set_user(data)
        return data

    async def register(
        self, name: str, email: str, password: str, photo_url: str | None = None
    ) -> dict:
        body = RegisterInput(
            name=name, email=email, password=password, photoURL=photo_url
        ).model_dump()
        data = await self._request("POST", "/auth/register", json=body)
        self.session.set_user(data)
        return data

    async def google_login(self, email: str, name: str | None, photo_url: str | None) -> dict:
        """Exchange an already verified Google profile for a ContestHub session."""
        body = {"email": email, "name": name, "photoURL": photo_url}
        data = await self._request("POST", "/auth/google-login", json=body)
        self.session.set_user(data)
        return data

    def logout(self) -> None:
        self.session.clear()

    async def restore(self, token: str) -> dict | None:
        """Reload the user behind a stored token; drop the token if the server rejects it."""
        try:
            data = await self._request("GET", "/auth/me", token=token)
        except ApiError:
            logger.info("Stored token rejected, clearing session")
            self.session.clear()
            return None
        self.session.set_user(data, token=token)
        return data

    async def me(self) -> dict:
        data = await self._request("GET", "/auth/me")
        self.session.merge_user(data)
        return data

    async def update_profile(self, **fields: Any) -> dict:
        body = ProfileUpdate(**fields).model_dump(exclude_none=True)
        data = await self._request("PUT", "/auth/me", json=body)
        if isinstance(data, dict):
            self.session.merge_user(data)
        return data

    # ==================== CONTESTS ====================

    async def list_contests(self, creator_email: str | None = None) -> list[dict]:
        params = {"creatorEmail": creator_email} if creator_email else None
        data = await self._request("GET", "/contests", params=params)
        return data or []

    async def get_contest(self, contest_id: str) -> dict:
        return await self._request("GET", f"/contests/{contest_id}")

    async def create_contest(self, data: dict) -> dict:
        body = ContestInput.for_create(data).to_payload()
        return await self._request("POST", "/contests", json=body)

    async def update_contest(self, contest_id: str, data: dict) -> dict:
        body = ContestUpdate.from_record(data).to_payload()
        return await self._request("PUT", f"/contests/{contest_id}", json=body)

    async def delete_contest(self, contest_id: str) -> Any:
        return await self._request("DELETE", f"/contests/{contest_id}")

    async def set_contest_status(self, contest_id: str, status: str) -> Any:
        cmd = InputSanitizer.validate_and_sanitize_cmd({"type": "SET_STATUS", "status": status})
        return await self._request(
            "PUT", f"/contests/status/{contest_id}", json={"status": cmd.status}
        )

    async def register_for_contest(self, contest_id: str, payment_id: str | None = None) -> Any:
        body: dict[str, Any] = {"userEmail": (self.session.user or {}).get("email")}
        if payment_id:
            body["paymentId"] = payment_id
        return await self._request("POST", f"/contests/{contest_id}/register", json=body)

    async def submit_task(self, contest_id: str, submission: str) -> Any:
        cmd = InputSanitizer.validate_and_sanitize_cmd(
            {"type": "SUBMIT_TASK", "submission": submission}
        )
        body = {
            "userEmail": (self.session.user or {}).get("email"),
            "submission": cmd.submission,
        }
        return await self._request("POST", f"/contests/{contest_id}/submit-task", json=body)

    async def declare_winner(self, contest_id: str, user_email: str) -> Any:
        cmd = InputSanitizer.validate_and_sanitize_cmd(
            {"type": "DECLARE_WINNER", "userEmail": user_email}
        )
        return await self._request(
            "POST", f"/contests/{contest_id}/declare-winner", json={"userEmail": cmd.userEmail}
        )

    async def leaderboard(self) -> list[dict]:
        return await self._request("GET", "/leaderboard") or []

    # ==================== USERS & PACKAGES ====================

    async def list_users(self) -> list[dict]:
        return await self._request("GET", "/users") or []

    async def set_user_role(self, user_id: str, role: str) -> Any:
        body = RoleUpdate(role=role).model_dump()
        return await self._request("PUT", f"/users/{user_id}/role", json=body)

    async def list_packages(self) -> list[dict]:
        return await self._request("GET", "/packages") or []

    async def buy_package(self, package_id: str) -> Any:
        data = await self._request("POST", "/users/buy-package", json={"packageId": package_id})
        self.session.merge_user({"currentPackage": package_id})
        return data

    # ==================== PAYMENTS ====================

    async def create_payment_intent(self, price: float) -> str:
        """Create a Stripe payment intent on the server and return its client secret."""
        data = await self._request("POST", "/create-payment-intent", json={"price": price})
        secret = data.get("clientSecret") if isinstance(data, dict) else None
        if not secret:
            raise ApiError(502, "Payment intent response had no clientSecret", data)
        return secret
