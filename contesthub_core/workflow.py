"""Contest detail and management actions: fetch, guard, call the API, re-fetch.

Every action returns a Notice (the message a toast would show). Errors are
caught per call and turned into an error Notice; nothing is retried and the
only rollback is the re-fetch that follows each mutation.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal, Protocol

import aiohttp

from .client import ApiError, ContestHubClient
from .contest import (
    TransitionError,
    apply_command,
    can_manage,
    is_contest_open,
    normalize_contest,
    participation_state,
    time_left,
    validate_transition,
)
from .listing import ALL_TAB, Page, filter_contests, paginate

logger = logging.getLogger(__name__)

NoticeLevel = Literal["success", "error", "info"]

# Server message when no Stripe secret is configured; registration then goes through test mode.
STRIPE_NOT_CONFIGURED = "Stripe is not configured"

_ACTION_ERRORS = (
    ApiError,
    ValueError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
)


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str

    @property
    def ok(self) -> bool:
        return self.level != "error"


@dataclass(frozen=True)
class ContestView:
    contest: dict
    state: str
    is_open: bool
    time_left: dict | None
    winner: dict | None
    can_register: bool
    can_submit: bool
    can_declare_winner: bool


class PaymentError(ValueError):
    """The payment step did not produce a payment id."""


class PaymentProcessor(Protocol):
    async def confirm(self, client_secret: str, amount: float, user: dict) -> str | None:
        """Confirm the card payment for client_secret; return the payment id."""
        ...


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    if isinstance(exc, asyncio.TimeoutError):
        return "Request timed out"
    return str(exc) or exc.__class__.__name__


class ParticipationWorkflow:
    """Register / pay / submit / declare-winner for one contest."""

    def __init__(
        self,
        client: ContestHubClient,
        payments: PaymentProcessor | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client
        self.payments = payments
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.contest: dict | None = None
        self.error: str | None = None

    @property
    def user(self) -> dict | None:
        return self.client.session.user

    def view(self) -> ContestView | None:
        if self.contest is None:
            return None
        now = self._clock()
        contest = self.contest
        user = self.user
        state = participation_state(contest, user)
        return ContestView(
            contest=contest,
            state=state,
            is_open=is_contest_open(contest, now),
            time_left=time_left(contest.get("endDate"), now),
            winner=contest.get("winner"),
            can_register=validate_transition(
                contest, {"type": "REGISTER", "paymentId": "-"}, user, now
            )
            is None,
            can_submit=validate_transition(
                contest, {"type": "SUBMIT_TASK", "submission": "-"}, user, now
            )
            is None,
            can_declare_winner=can_manage(contest, user),
        )

    async def load(self, contest_id: str) -> ContestView | None:
        try:
            raw = await self.client.get_contest(contest_id)
        except _ACTION_ERRORS as e:
            self.error = _error_text(e) or "Something went wrong"
            logger.warning(f"Failed to fetch contest {contest_id}: {self.error}")
            return None
        self.contest = normalize_contest(raw)
        self.error = None
        return self.view()

    async def _refresh(self) -> None:
        raw = await self.client.get_contest(self.contest["_id"])
        self.contest = normalize_contest(raw)

    def _require_contest(self) -> dict:
        if self.contest is None:
            raise ValueError("Contest not loaded")
        return self.contest

    async def _collect_payment(self, price: float) -> str:
        try:
            secret = await self.client.create_payment_intent(price)
        except ApiError as e:
            if STRIPE_NOT_CONFIGURED in e.message:
                payment_id = f"fast_{int(time.time() * 1000)}"
                logger.info(f"Payments in test mode, using {payment_id}")
                return payment_id
            raise
        if self.payments is None:
            raise PaymentError("No payment processor available")
        payment_id = await self.payments.confirm(secret, price, self.user or {})
        if not payment_id:
            raise PaymentError("Payment was not completed")
        return payment_id

    async def register(self) -> Notice:
        try:
            contest = self._require_contest()
            now = self._clock()
            cmd: dict = {"type": "REGISTER"}
            error = validate_transition(contest, cmd, self.user, now)
            if error is not None and error.kind != "payment_required":
                raise TransitionError(error)
            if error is not None:
                cmd["paymentId"] = await self._collect_payment(float(contest["price"]))
            outcome = apply_command(contest, cmd, self.user, now)
            await self.client.register_for_contest(
                contest["_id"], outcome.cmd_payload.get("paymentId")
            )
            self.contest = outcome.contest
            await self._refresh()
        except _ACTION_ERRORS as e:
            logger.warning(f"Registration failed: {_error_text(e)}")
            return Notice("error", f"Registration failed: {_error_text(e)}")
        return Notice("success", "Registered successfully!")

    async def submit(self, submission: str) -> Notice:
        try:
            contest = self._require_contest()
            cmd = {"type": "SUBMIT_TASK", "submission": submission}
            outcome = apply_command(contest, cmd, self.user, self._clock())
            await self.client.submit_task(contest["_id"], outcome.cmd_payload["submission"])
            self.contest = outcome.contest
            await self._refresh()
        except _ACTION_ERRORS as e:
            logger.warning(f"Submission failed: {_error_text(e)}")
            return Notice("error", f"Submission failed: {_error_text(e)}")
        return Notice("success", "Task submitted successfully!")

    async def declare_winner(self, user_email: str) -> Notice:
        try:
            contest = self._require_contest()
            cmd = {"type": "DECLARE_WINNER", "userEmail": user_email}
            outcome = apply_command(contest, cmd, self.user, self._clock())
            if not outcome.changed:
                return Notice("info", "Winner already declared")
            await self.client.declare_winner(contest["_id"], outcome.cmd_payload["userEmail"])
            self.contest = outcome.contest
            await self._refresh()
        except _ACTION_ERRORS as e:
            logger.warning(f"Declare winner failed: {_error_text(e)}")
            return Notice("error", f"Failed to declare winner: {_error_text(e)}")
        return Notice("success", "Winner declared successfully!")


class ContestManager:
    """Admin/creator dashboard actions over a fetched contest list."""

    def __init__(self, client: ContestHubClient):
        self.client = client
        self.contests: list[dict] = []
        self.users: list[dict] = []

    @property
    def user(self) -> dict | None:
        return self.client.session.user

    async def load(self, creator_email: str | None = None) -> Notice | None:
        try:
            raw = await self.client.list_contests(creator_email=creator_email)
        except _ACTION_ERRORS as e:
            logger.warning(f"Error fetching contests: {_error_text(e)}")
            return Notice("error", "Failed to load contests")
        self.contests = [normalize_contest(c) for c in raw]
        return None

    async def load_users(self) -> Notice | None:
        try:
            self.users = await self.client.list_users()
        except _ACTION_ERRORS as e:
            logger.warning(f"Error fetching users: {_error_text(e)}")
            return Notice("error", "Failed to load users")
        return None

    def page(self, number: int = 1, tab: str = ALL_TAB, search: str = "") -> Page:
        matching = filter_contests(self.contests, tab, search)
        return paginate(matching, number, self.client.settings.page_size)

    def users_page(self, number: int = 1) -> Page:
        return paginate(self.users, number, self.client.settings.users_page_size)

    def _find(self, contest_id: str) -> dict:
        for contest in self.contests:
            if contest["_id"] == contest_id:
                return contest
        raise ValueError("Contest not found")

    def _replace(self, contest: dict) -> None:
        self.contests = [contest if c["_id"] == contest["_id"] else c for c in self.contests]

    async def set_status(self, contest_id: str, status: str) -> Notice:
        try:
            contest = self._find(contest_id)
            outcome = apply_command(contest, {"type": "SET_STATUS", "status": status}, self.user)
            await self.client.set_contest_status(contest_id, status)
            self._replace(outcome.contest)
        except _ACTION_ERRORS as e:
            logger.warning(f"{status} error: {_error_text(e)}")
            return Notice("error", _error_text(e) or "Failed to update contest")
        verb = {"confirmed": "confirmed", "rejected": "rejected"}.get(status, "updated")
        return Notice("success", f"Contest {verb} successfully")

    async def delete(self, contest_id: str) -> Notice:
        try:
            contest = self._find(contest_id)
            # Deleting follows the same rule as editing.
            error = validate_transition(
                contest, {"type": "UPDATE_CONTEST"}, self.user
            )
            if error is not None:
                raise TransitionError(error)
            await self.client.delete_contest(contest_id)
            self.contests = [c for c in self.contests if c["_id"] != contest_id]
        except _ACTION_ERRORS as e:
            logger.warning(f"delete error: {_error_text(e)}")
            return Notice("error", f"Delete failed: {_error_text(e)}")
        return Notice("success", "Contest deleted successfully")

    async def update(self, contest_id: str, fields: dict) -> Notice:
        try:
            contest = self._find(contest_id)
            outcome = apply_command(
                contest, {"type": "UPDATE_CONTEST", "fields": fields}, self.user
            )
            await self.client.update_contest(contest_id, outcome.contest)
            self._replace(outcome.contest)
        except _ACTION_ERRORS as e:
            logger.warning(f"update error: {_error_text(e)}")
            return Notice("error", f"Update failed: {_error_text(e)}")
        return Notice("success", "Contest updated successfully")

    async def change_role(self, user_id: str, role: str) -> Notice:
        if not self.client.session.is_admin:
            return Notice("error", "Only admin can perform this action")
        try:
            await self.client.set_user_role(user_id, role)
        except _ACTION_ERRORS as e:
            logger.warning(f"Role update failed: {_error_text(e)}")
            return Notice("error", _error_text(e) or "Role update failed")
        return Notice("success", "Role updated successfully")
