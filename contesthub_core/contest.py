"""Core contest participation transitions (pure, no HTTP/DB).

This module implements the client-side business rules of ContestHub.
All functions are deterministic and side-effect free (no I/O, no network).

Architecture:
- A contest is a plain dict shaped like the API record (_id, title, price, endDate,
  participants, submissions, creatorEmail, status, winner, ...)
- Commands are plain dicts with a 'type' field (REGISTER, SUBMIT_TASK, DECLARE_WINNER, ...)
- apply_command() takes (contest, cmd, actor) and returns CommandOutcome with the updated contest
- Mutations are performed on a deepcopy; the caller posts to the API and re-fetches

Participation lifecycle per (user, contest):
- not_registered -> registered: REGISTER (paid contests need a paymentId first)
- registered -> submitted: SUBMIT_TASK with non-empty text, at most once
- contest-level winner_declared: DECLARE_WINNER by the contest creator or an admin

Admins and creators never take part: participation_state() reports them as
submitted, so the register/submit actions are closed to them.
"""
from __future__ import annotations

import logging
import math
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List

from .validation import CONTEST_STATUSES, InputSanitizer

logger = logging.getLogger(__name__)

NOT_REGISTERED = "not_registered"
REGISTERED = "registered"
SUBMITTED = "submitted"

PRIVILEGED_ROLES = {"admin", "creator"}

# Keys UPDATE_CONTEST may never overwrite; they change only through their own commands.
PROTECTED_FIELDS = {
    "_id",
    "participants",
    "submissions",
    "winner",
    "status",
    "creatorEmail",
}


@dataclass
class CommandOutcome:
    """Result of applying a core command."""

    contest: Dict[str, Any]
    cmd_payload: Dict[str, Any]
    changed: bool


@dataclass
class ValidationError:
    """Represents a rejected transition (pure core)."""

    kind: str
    message: str | None = None
    status_code: int | None = None


class TransitionError(ValueError):
    """Raised by apply_command when a command is not allowed in the current state."""

    def __init__(self, error: ValidationError):
        super().__init__(error.message or error.kind)
        self.error = error


def default_contest(contest_id: str | None = None) -> Dict[str, Any]:
    """Create a fresh contest record with default values.

    Args:
        contest_id: Optional record id; generated if not provided

    Returns:
        Dict with keys:
        - price: Registration fee (0.0 means free, no payment step)
        - isActive: False until the creator activates it
        - endDate: ISO deadline or None
        - participants: List of user emails
        - submissions: List of {userEmail, userName, submission, status, submittedAt}
        - status: 'pending' until an admin confirms or rejects it
        - winner: None until DECLARE_WINNER
    """
    import uuid

    return {
        "_id": contest_id or uuid.uuid4().hex,
        "title": "",
        "description": "",
        "category": "",
        "image": "",
        "tags": [],
        "price": 0.0,
        "prizeMoney": 0.0,
        "reward": None,
        "taskInstruction": "",
        "endDate": None,
        "isActive": False,
        "participants": [],
        "submissions": [],
        "creatorEmail": "",
        "status": "pending",
        "winner": None,
    }


def parse_end_date(value: Any) -> datetime | None:
    """Parse an API deadline into an aware datetime.

    Examples:
        - "2026-01-31T18:00:00.000Z" → 2026-01-31 18:00 UTC
        - "2026-01-31" → 2026-01-31 00:00 UTC
        - None / "" / "garbage" → None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if stripped.endswith("Z"):
            stripped = stripped[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(stripped)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def time_left(end_date: Any, now: datetime | None = None) -> Dict[str, int] | None:
    """Countdown to the deadline split into days/hours/minutes/seconds.

    Returns None once the deadline has passed (or when it cannot be parsed).
    """
    deadline = parse_end_date(end_date)
    if deadline is None:
        return None
    difference = (deadline - _now(now)).total_seconds()
    if difference <= 0:
        return None
    total = int(difference)
    return {
        "days": total // 86400,
        "hours": (total // 3600) % 24,
        "minutes": (total // 60) % 60,
        "seconds": total % 60,
    }


def _coerce_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            amount = float(stripped)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(int(value))
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def participant_email(entry: Any) -> str:
    """Email of a participants entry (plain string or legacy {email, status} dict)."""
    if isinstance(entry, str):
        return InputSanitizer.normalize_email(entry)
    if isinstance(entry, dict):
        return InputSanitizer.normalize_email(entry.get("email"))
    return ""


def _normalize_participants(participants: Any) -> List[Any]:
    """Drop malformed entries and keep the first occurrence of each email."""
    normalized: List[Any] = []
    if not isinstance(participants, list):
        return normalized
    seen: set[str] = set()
    for entry in participants:
        email = participant_email(entry)
        if not email or email in seen:
            continue
        seen.add(email)
        normalized.append(entry)
    return normalized


def _normalize_submissions(submissions: Any) -> List[dict]:
    """Keep one well-formed submission per user, defaulting status to pending."""
    normalized: List[dict] = []
    if not isinstance(submissions, list):
        return normalized
    seen: set[str] = set()
    for sub in submissions:
        if not isinstance(sub, dict):
            continue
        email = InputSanitizer.normalize_email(sub.get("userEmail"))
        if not email or email in seen:
            continue
        seen.add(email)
        entry = dict(sub)
        entry["status"] = "winner" if sub.get("status") == "winner" else "pending"
        normalized.append(entry)
    return normalized


def normalize_contest(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce an API contest record into the shape the core relies on.

    - Missing keys are filled from default_contest()
    - price/prizeMoney become non-negative floats
    - participants/submissions lose malformed and duplicate entries
    - status defaults to 'pending'
    - a legacy numeric participants counter becomes an empty list
    """
    contest = default_contest(raw.get("_id") or raw.get("id"))
    for key, value in raw.items():
        if key == "id":
            continue
        contest[key] = deepcopy(value)
    contest["price"] = _coerce_amount(raw.get("price"))
    contest["prizeMoney"] = _coerce_amount(raw.get("prizeMoney"))
    contest["isActive"] = _coerce_bool(raw.get("isActive", False))
    contest["participants"] = _normalize_participants(raw.get("participants"))
    contest["submissions"] = _normalize_submissions(raw.get("submissions"))
    if not isinstance(contest.get("tags"), list):
        contest["tags"] = []
    status = raw.get("status")
    contest["status"] = status if status in CONTEST_STATUSES else "pending"
    return contest


def is_privileged(user: Dict[str, Any] | None) -> bool:
    return bool(user) and user.get("role") in PRIVILEGED_ROLES


def is_registered(contest: Dict[str, Any], email: str) -> bool:
    email = InputSanitizer.normalize_email(email)
    if not email:
        return False
    participants = contest.get("participants")
    if not isinstance(participants, list):
        return False
    return any(participant_email(p) == email for p in participants)


def find_submission(contest: Dict[str, Any], email: str) -> dict | None:
    email = InputSanitizer.normalize_email(email)
    if not email:
        return None
    for sub in contest.get("submissions") or []:
        if isinstance(sub, dict) and InputSanitizer.normalize_email(sub.get("userEmail")) == email:
            return sub
    return None


def has_submitted(contest: Dict[str, Any], email: str) -> bool:
    return find_submission(contest, email) is not None


def winner_submission(contest: Dict[str, Any]) -> dict | None:
    for sub in contest.get("submissions") or []:
        if isinstance(sub, dict) and sub.get("status") == "winner":
            return sub
    return None


def winner_email(contest: Dict[str, Any]) -> str:
    """Email of the declared winner, from the winning submission or contest.winner."""
    sub = winner_submission(contest)
    if sub is not None:
        return InputSanitizer.normalize_email(sub.get("userEmail"))
    winner = contest.get("winner")
    if isinstance(winner, dict):
        return InputSanitizer.normalize_email(winner.get("email"))
    return ""


def winner_declared(contest: Dict[str, Any]) -> bool:
    return winner_submission(contest) is not None or bool(winner_email(contest))


def is_contest_open(contest: Dict[str, Any], now: datetime | None = None) -> bool:
    """A contest accepts registrations and submissions while active, not rejected
    and before its deadline. A contest without a deadline stays open."""
    if not contest.get("isActive"):
        return False
    if contest.get("status") == "rejected":
        return False
    deadline = parse_end_date(contest.get("endDate"))
    if deadline is None:
        return True
    return deadline > _now(now)


def participation_state(contest: Dict[str, Any], user: Dict[str, Any] | None) -> str:
    """Lifecycle state of user in contest: not_registered | registered | submitted."""
    if not user:
        return NOT_REGISTERED
    if is_privileged(user):
        return SUBMITTED
    email = user.get("email") or ""
    if has_submitted(contest, email):
        return SUBMITTED
    if is_registered(contest, email):
        return REGISTERED
    return NOT_REGISTERED


def can_manage(contest: Dict[str, Any], user: Dict[str, Any] | None) -> bool:
    """Admins manage every contest, creators only their own."""
    if not user:
        return False
    role = user.get("role")
    if role == "admin":
        return True
    if role == "creator":
        owner = InputSanitizer.normalize_email(contest.get("creatorEmail"))
        return bool(owner) and owner == InputSanitizer.normalize_email(user.get("email"))
    return False


def validate_transition(
    contest: Dict[str, Any],
    cmd: Dict[str, Any],
    actor: Dict[str, Any] | None,
    now: datetime | None = None,
) -> ValidationError | None:
    """Check a command against the contest and the acting user.

    Returns ValidationError if rejected, otherwise None.

    Rules:
        REGISTER: actor not yet registered → contest open → paymentId when price > 0
        SUBMIT_TASK: actor registered and not yet submitted → non-empty text → contest open
        DECLARE_WINNER: creator of the contest or admin → submission exists → no other winner
        SET_STATUS: admin only, status in pending/confirmed/rejected
        UPDATE_CONTEST: creator of the contest while pending, or admin
    """
    ctype = cmd.get("type")

    if not actor or not InputSanitizer.normalize_email(actor.get("email")):
        return ValidationError(
            kind="unauthenticated", message="Login required", status_code=401
        )

    if ctype == "REGISTER":
        state = participation_state(contest, actor)
        if state != NOT_REGISTERED:
            return ValidationError(
                kind="already_registered",
                message="You are already registered for this contest",
                status_code=409,
            )
        if not is_contest_open(contest, now):
            return ValidationError(
                kind="contest_closed", message="Contest Ended", status_code=400
            )
        if _coerce_amount(contest.get("price")) > 0:
            payment_id = cmd.get("paymentId")
            if not isinstance(payment_id, str) or not payment_id.strip():
                return ValidationError(
                    kind="payment_required",
                    message="Payment is required before registering",
                    status_code=402,
                )
        return None

    if ctype == "SUBMIT_TASK":
        state = participation_state(contest, actor)
        if state == SUBMITTED:
            return ValidationError(
                kind="already_submitted",
                message="You have already submitted a task for this contest",
                status_code=409,
            )
        if state == NOT_REGISTERED:
            return ValidationError(
                kind="not_registered",
                message="Register for the contest before submitting",
                status_code=403,
            )
        text = cmd.get("submission")
        if not isinstance(text, str) or not text.strip():
            return ValidationError(
                kind="empty_submission", message="Submission cannot be empty", status_code=400
            )
        if not is_contest_open(contest, now):
            return ValidationError(
                kind="contest_closed", message="Contest Ended", status_code=400
            )
        return None

    if ctype == "DECLARE_WINNER":
        if not can_manage(contest, actor):
            return ValidationError(
                kind="forbidden",
                message="Only the contest creator or an admin can declare a winner",
                status_code=403,
            )
        target = find_submission(contest, cmd.get("userEmail") or "")
        if target is None:
            return ValidationError(
                kind="unknown_submission", message="Submission not found", status_code=404
            )
        current = winner_email(contest)
        if current and current != InputSanitizer.normalize_email(target.get("userEmail")):
            return ValidationError(
                kind="winner_already_declared",
                message="A winner has already been declared for this contest",
                status_code=409,
            )
        return None

    if ctype == "SET_STATUS":
        if actor.get("role") != "admin":
            return ValidationError(
                kind="forbidden", message="Only admin can perform this action", status_code=403
            )
        if cmd.get("status") not in CONTEST_STATUSES:
            return ValidationError(
                kind="invalid_status",
                message=f"status must be one of {sorted(CONTEST_STATUSES)}",
                status_code=400,
            )
        return None

    if ctype == "UPDATE_CONTEST":
        if not can_manage(contest, actor):
            return ValidationError(
                kind="forbidden",
                message="You are not allowed to edit this contest",
                status_code=403,
            )
        if actor.get("role") != "admin" and (contest.get("status") or "pending") != "pending":
            return ValidationError(
                kind="not_editable",
                message="Only pending contests can be edited",
                status_code=409,
            )
        return None

    return ValidationError(
        kind="unknown_command", message=f"Unknown command: {ctype}", status_code=400
    )


def _apply_transition(
    contest: Dict[str, Any],
    cmd: Dict[str, Any],
    actor: Dict[str, Any],
    now: datetime,
) -> CommandOutcome:
    """Apply an already validated transition to a deepcopy of the contest."""
    new_contest: Dict[str, Any] = deepcopy(contest)
    ctype = cmd.get("type")
    payload = dict(cmd)
    changed = False
    email = actor.get("email") or ""

    if ctype == "REGISTER":
        participants = new_contest.get("participants")
        if not isinstance(participants, list):
            participants = []
        participants.append(email)
        new_contest["participants"] = participants
        payload["userEmail"] = email
        if cmd.get("paymentId"):
            payload["paymentId"] = cmd["paymentId"].strip()
        changed = True

    elif ctype == "SUBMIT_TASK":
        submissions = new_contest.get("submissions")
        if not isinstance(submissions, list):
            submissions = []
        entry = {
            "userEmail": email,
            "userName": InputSanitizer.sanitize_display_name(actor.get("name") or "") or None,
            "submission": cmd["submission"].strip(),
            "status": "pending",
            "submittedAt": now.isoformat(),
        }
        submissions.append(entry)
        new_contest["submissions"] = submissions
        payload["submission"] = entry["submission"]
        payload["userEmail"] = email
        changed = True

    elif ctype == "DECLARE_WINNER":
        target = find_submission(new_contest, cmd.get("userEmail") or "")
        payload["userEmail"] = target["userEmail"]
        if target.get("status") != "winner":
            target["status"] = "winner"
            new_contest["winner"] = {
                "name": target.get("userName") or target["userEmail"],
                "email": target["userEmail"],
                "photo": target.get("userPhoto"),
            }
            changed = True

    elif ctype == "SET_STATUS":
        status = cmd["status"]
        if new_contest.get("status") != status:
            new_contest["status"] = status
            changed = True

    elif ctype == "UPDATE_CONTEST":
        fields = cmd.get("fields") or {}
        applied: Dict[str, Any] = {}
        for key, value in fields.items():
            if key in PROTECTED_FIELDS:
                logger.debug(f"UPDATE_CONTEST ignoring protected field {key}")
                continue
            if new_contest.get(key) != value:
                new_contest[key] = deepcopy(value)
                applied[key] = value
        payload["fields"] = applied
        changed = bool(applied)

    return CommandOutcome(contest=new_contest, cmd_payload=payload, changed=changed)


def apply_command(
    contest: Dict[str, Any],
    cmd: Dict[str, Any],
    actor: Dict[str, Any] | None,
    now: datetime | None = None,
) -> CommandOutcome:
    """Validate and apply a lifecycle command.

    Args:
        contest: Current contest record (not mutated)
        cmd: Command dict with 'type' field and command-specific params
        actor: The logged-in user record (email, name, role)
        now: Clock override for deadline checks

    Returns:
        CommandOutcome with updated contest, enriched command payload and changed flag

    Raises:
        TransitionError: if validate_transition() rejects the command
    """
    current = _now(now)
    error = validate_transition(contest, cmd, actor, current)
    if error is not None:
        logger.info(f"{cmd.get('type')} rejected: {error.kind}")
        raise TransitionError(error)
    return _apply_transition(contest, cmd, actor, current)
