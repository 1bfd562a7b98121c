from .contest import (
    NOT_REGISTERED,
    REGISTERED,
    SUBMITTED,
    CommandOutcome,
    TransitionError,
    ValidationError,
    apply_command,
    can_manage,
    default_contest,
    has_submitted,
    is_contest_open,
    is_registered,
    normalize_contest,
    parse_end_date,
    participation_state,
    time_left,
    validate_transition,
    winner_declared,
)
from .types import CommandPayload, ContestRecord, SubmissionEntry, UserRecord
from .validation import ContestInput, ContestUpdate, InputSanitizer, ValidatedCmd
from .listing import (
    LeaderboardRow,
    Page,
    ParticipatedContest,
    ProfileStats,
    categories,
    compute_leaderboard,
    contest_badge,
    created_contests,
    filter_contests,
    paginate,
    participated_contests,
    popular_contests,
    profile_stats,
    submitted_tasks,
    winning_contests,
)
from .config import Settings, load_settings
from .client import ApiError, AuthSession, ContestHubClient
from .workflow import ContestManager, ContestView, Notice, ParticipationWorkflow, PaymentError

__all__ = [
    "NOT_REGISTERED",
    "REGISTERED",
    "SUBMITTED",
    "CommandOutcome",
    "CommandPayload",
    "ContestRecord",
    "SubmissionEntry",
    "UserRecord",
    "TransitionError",
    "ValidationError",
    "apply_command",
    "can_manage",
    "default_contest",
    "has_submitted",
    "is_contest_open",
    "is_registered",
    "normalize_contest",
    "parse_end_date",
    "participation_state",
    "time_left",
    "validate_transition",
    "winner_declared",
    "ContestInput",
    "ContestUpdate",
    "InputSanitizer",
    "ValidatedCmd",
    "LeaderboardRow",
    "Page",
    "ParticipatedContest",
    "ProfileStats",
    "categories",
    "compute_leaderboard",
    "contest_badge",
    "created_contests",
    "filter_contests",
    "paginate",
    "participated_contests",
    "popular_contests",
    "profile_stats",
    "submitted_tasks",
    "winning_contests",
    "Settings",
    "load_settings",
    "ApiError",
    "AuthSession",
    "ContestHubClient",
    "ContestManager",
    "ContestView",
    "Notice",
    "ParticipationWorkflow",
    "PaymentError",
]
