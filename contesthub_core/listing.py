"""Contest browsing and dashboard views over already-fetched records.

Single source of truth for what the list/dashboard screens show:
- All Contests: category tabs, search over title/tags/description, paginated grid.
- My Participated / My Winning / Submitted Tasks / My Created: per-user filters.
- Profile: participated/won counts and win percentage.
- Leaderboard: points per winner with shared ranks on equal points.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Sequence

from .contest import (
    is_contest_open,
    parse_end_date,
    participant_email,
    winner_declared,
    winner_email,
    winner_submission,
)
from .validation import InputSanitizer

ALL_TAB = "All"
CONTEST_PAGE_SIZE = 6
USERS_PAGE_SIZE = 10
POINTS_PER_WIN = 10

ContestBadge = Literal["Winner Selected", "Active", "Ended"]
PaymentStatus = Literal["paid", "pending"]


@dataclass(frozen=True)
class Page:
    items: tuple
    page: int
    total_pages: int
    total: int
    # 1-based "Showing first - last of total"
    first_index: int
    last_index: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class ParticipatedContest:
    contest: dict
    payment_status: PaymentStatus


@dataclass(frozen=True)
class ProfileStats:
    participated: int
    won: int
    lost: int
    win_percentage: int


@dataclass(frozen=True)
class LeaderboardRow:
    rank: int
    name: str
    email: str
    wins: int
    points: int


def truncate(text: str | None, n: int = 120) -> str | None:
    if text and len(text) > n:
        return text[:n] + "..."
    return text


def _contest_id(contest: dict) -> str | None:
    return contest.get("_id") or contest.get("id")


def _email(value: Any) -> str:
    return InputSanitizer.normalize_email(value)


def _deadline_sort_key(contest: dict) -> tuple[int, float]:
    deadline = parse_end_date(contest.get("endDate"))
    if deadline is None:
        # No deadline sorts last.
        return (1, math.inf)
    return (0, deadline.timestamp())


def categories(contests: Sequence[dict]) -> list[str]:
    """Tabs for the contest grid: "All" followed by each category in first-seen order."""
    tabs = [ALL_TAB]
    for contest in contests:
        category = contest.get("category")
        if isinstance(category, str) and category and category not in tabs:
            tabs.append(category)
    return tabs


def matches_search(contest: dict, query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    title = contest.get("title") or ""
    if q in title.lower():
        return True
    tags = contest.get("tags") or []
    if isinstance(tags, list) and q in " ".join(str(t) for t in tags).lower():
        return True
    description = contest.get("description") or ""
    return q in description.lower()


def filter_contests(
    contests: Sequence[dict], tab: str = ALL_TAB, search: str = ""
) -> list[dict]:
    return [
        c
        for c in contests
        if (tab == ALL_TAB or c.get("category") == tab) and matches_search(c, search)
    ]


def paginate(items: Sequence[Any], page: int = 1, page_size: int = CONTEST_PAGE_SIZE) -> Page:
    """Slice one page out of items; page is clamped to [1, total_pages]."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    total = len(items)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    chunk = tuple(items[start : start + page_size])
    return Page(
        items=chunk,
        page=page,
        total_pages=total_pages,
        total=total,
        first_index=start + (1 if chunk else 0),
        last_index=start + len(chunk),
    )


def contest_badge(contest: dict, now: datetime | None = None) -> ContestBadge:
    if winner_declared(contest):
        return "Winner Selected"
    if is_contest_open(contest, now):
        return "Active"
    return "Ended"


def _find_participant(contest: dict, email: str) -> Any:
    participants = contest.get("participants")
    if not isinstance(participants, list):
        return None
    for entry in participants:
        if participant_email(entry) == email:
            return entry
    return None


def participated_contests(contests: Sequence[dict], email: str) -> list[ParticipatedContest]:
    """Contests the user joined, earliest deadline first, with payment status."""
    email = _email(email)
    if not email:
        return []
    rows: list[ParticipatedContest] = []
    for contest in sorted(contests, key=_deadline_sort_key):
        entry = _find_participant(contest, email)
        if entry is None:
            continue
        status = entry.get("status") if isinstance(entry, dict) else None
        rows.append(
            ParticipatedContest(
                contest=contest,
                payment_status="paid" if status == "paid" else "pending",
            )
        )
    return rows


def _won_by(contest: dict, email: str) -> bool:
    return winner_email(contest) == email


def _winner_name(contest: dict) -> str | None:
    sub = winner_submission(contest)
    if sub is not None and sub.get("userName"):
        return sub["userName"]
    winner = contest.get("winner")
    if isinstance(winner, dict):
        return winner.get("name")
    return None


def winning_contests(contests: Sequence[dict], email: str) -> list[dict]:
    email = _email(email)
    if not email:
        return []
    return [c for c in contests if _won_by(c, email)]


def submitted_tasks(
    contests: Sequence[dict], email: str, contest_id: str | None = None
) -> list[dict]:
    """The user's submissions across contests, tagged with contestTitle and contestId."""
    email = _email(email)
    if not email:
        return []
    tasks: list[dict] = []
    for contest in contests:
        if contest_id and _contest_id(contest) != contest_id:
            continue
        for sub in contest.get("submissions") or []:
            if not isinstance(sub, dict) or _email(sub.get("userEmail")) != email:
                continue
            task = dict(sub)
            task["status"] = sub.get("status") or "pending"
            task["contestTitle"] = contest.get("title")
            task["contestId"] = _contest_id(contest)
            tasks.append(task)
    return tasks


def created_contests(contests: Sequence[dict], email: str) -> list[dict]:
    email = _email(email)
    if not email:
        return []
    created: list[dict] = []
    for contest in contests:
        if _email(contest.get("creatorEmail")) != email:
            continue
        row = dict(contest)
        row["status"] = contest.get("status") or "pending"
        created.append(row)
    return created


def profile_stats(contests: Sequence[dict], email: str) -> ProfileStats:
    email = _email(email)
    participated = sum(1 for c in contests if email and _find_participant(c, email) is not None)
    won = len(winning_contests(contests, email))
    win_percentage = round(won / participated * 100) if participated else 0
    return ProfileStats(
        participated=participated,
        won=won,
        lost=max(participated - won, 0),
        win_percentage=win_percentage,
    )


def compute_leaderboard(
    contests: Sequence[dict], points_per_win: int = POINTS_PER_WIN, limit: int | None = None
) -> list[LeaderboardRow]:
    """Rank winners by points; equal points share a rank (1, 2, 2, 4)."""
    wins: dict[str, int] = {}
    names: dict[str, str] = {}
    for contest in contests:
        email = winner_email(contest)
        if not email:
            continue
        wins[email] = wins.get(email, 0) + 1
        names.setdefault(email, _winner_name(contest) or email)

    ordered = sorted(wins.items(), key=lambda item: (-item[1], names[item[0]].lower(), item[0]))
    rows: list[LeaderboardRow] = []
    previous_points: int | None = None
    rank = 0
    for position, (email, count) in enumerate(ordered, start=1):
        points = count * points_per_win
        if points != previous_points:
            rank = position
            previous_points = points
        rows.append(
            LeaderboardRow(rank=rank, name=names[email], email=email, wins=count, points=points)
        )
    if limit is not None:
        rows = rows[:limit]
    return rows


def participant_count(contest: dict) -> int:
    participants = contest.get("participants")
    if isinstance(participants, list):
        return len(participants)
    # Older records kept a bare counter.
    if isinstance(participants, int) and not isinstance(participants, bool):
        return max(participants, 0)
    return 0


def popular_contests(contests: Sequence[dict], limit: int = 5) -> list[dict]:
    """Most-joined contests first; sorted() keeps API order among equals."""
    return sorted(contests, key=lambda c: -participant_count(c))[:limit]
