"""Type definitions for contest records, users and commands."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict, Union


class SubmissionEntry(TypedDict, total=False):
    """A submission embedded in a contest's submissions list."""
    userEmail: str
    userName: Optional[str]
    submission: str
    status: str  # 'pending' | 'winner'
    submittedAt: Optional[str]


class ParticipantEntry(TypedDict, total=False):
    """Legacy participant shape; current records store the email string only."""
    email: str
    status: str  # payment status: 'paid' | 'pending'
    paymentId: Optional[str]


class WinnerInfo(TypedDict, total=False):
    name: str
    email: str
    photo: Optional[str]


class ContestRecord(TypedDict, total=False):
    """
    TypedDict representing a contest as returned by the API.

    All fields are optional (total=False) because older records miss some
    of them; default_contest() fills every key.
    """
    _id: str
    title: str
    description: str
    category: str
    image: str
    tags: List[str]

    # Money
    price: float  # Registration fee; 0 means free
    prizeMoney: float
    reward: Optional[str]

    taskInstruction: str
    endDate: Optional[str]  # ISO 8601
    isActive: bool

    participants: List[Union[str, ParticipantEntry]]
    submissions: List[SubmissionEntry]

    creatorEmail: str
    status: str  # 'pending' | 'confirmed' | 'rejected'
    winner: Optional[WinnerInfo]


class UserRecord(TypedDict, total=False):
    """A user as returned by /auth/me and /users."""
    _id: str
    name: str
    email: str
    photoURL: Optional[str]
    role: str  # 'user' | 'creator' | 'admin'
    bio: Optional[str]
    currentPackage: Optional[str]
    token: Optional[str]


class CommandPayload(TypedDict, total=False):
    """
    TypedDict for command payloads sent to apply_command().

    Fields vary by command type.
    """
    # Common
    type: str
    contestId: Optional[str]

    # REGISTER
    paymentId: Optional[str]

    # SUBMIT_TASK
    submission: Optional[str]

    # DECLARE_WINNER
    userEmail: Optional[str]

    # SET_STATUS
    status: Optional[str]

    # UPDATE_CONTEST
    fields: Optional[Dict[str, Any]]
