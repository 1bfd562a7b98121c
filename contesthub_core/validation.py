"""
Input validation schemas using Pydantic v2
Validates command payloads, contest forms and account inputs
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

COMMAND_TYPES = {
    "REGISTER",
    "SUBMIT_TASK",
    "DECLARE_WINNER",
    "SET_STATUS",
    "UPDATE_CONTEST",
}

CONTEST_CATEGORIES = (
    "Design",
    "Development",
    "Photography",
    "Writing",
    "Marketing",
)

CONTEST_STATUSES = {"pending", "confirmed", "rejected"}

USER_ROLES = {"user", "creator", "admin"}

# Markup that must never reach a rendered title/name.
DANGEROUS_PATTERNS = (
    "<script",
    "</script",
    "javascript:",
    "onerror=",
    "onclick=",
    "onload=",
    "<iframe",
    "<object",
    "<embed",
)


def _reject_markup(value: str, field_name: str) -> str:
    lowered = value.lower()
    for pattern in DANGEROUS_PATTERNS:
        if pattern in lowered:
            raise ValueError(f"{field_name} contains potentially dangerous pattern: {pattern}")
    if "<" in value and ">" in value:
        raise ValueError(f"{field_name} contains HTML tags")
    return value


# ==================== COMMANDS ====================


class ValidatedCmd(BaseModel):
    """Lifecycle command with per-type required fields"""

    type: str = Field(..., min_length=1, max_length=50, description="Command type")
    contestId: Optional[str] = Field(None, min_length=1, max_length=64)

    # REGISTER
    paymentId: Optional[str] = Field(
        None, min_length=1, max_length=255, description="Payment intent / fast id"
    )

    # SUBMIT_TASK
    submission: Optional[str] = Field(
        None, max_length=5000, description="Submission link or details"
    )

    # DECLARE_WINNER
    userEmail: Optional[EmailStr] = None

    # SET_STATUS
    status: Optional[str] = None

    # UPDATE_CONTEST
    fields: Optional[Dict[str, Any]] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate command type is one of allowed types"""
        if v not in COMMAND_TYPES:
            raise ValueError(f"type must be one of {sorted(COMMAND_TYPES)}, got {v}")
        return v

    @field_validator("submission")
    @classmethod
    def strip_submission(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if v not in CONTEST_STATUSES:
            raise ValueError(f"status must be one of {sorted(CONTEST_STATUSES)}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_command_fields(self) -> Self:
        """Validate required fields based on command type"""
        cmd_type = self.type

        if cmd_type == "SUBMIT_TASK":
            if not self.submission:
                raise ValueError("SUBMIT_TASK requires a non-empty submission")

        elif cmd_type == "DECLARE_WINNER":
            if self.userEmail is None:
                raise ValueError("DECLARE_WINNER requires userEmail")

        elif cmd_type == "SET_STATUS":
            if self.status is None:
                raise ValueError("SET_STATUS requires status")

        elif cmd_type == "UPDATE_CONTEST":
            if not self.fields:
                raise ValueError("UPDATE_CONTEST requires fields")

        return self

    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ==================== CONTEST FORM ====================


class ContestUpdate(BaseModel):
    """Edit contest form; only the fields that carry a value are checked and sent"""

    title: Optional[str] = Field(None, min_length=1, max_length=150)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    image: Optional[str] = Field(None, min_length=1, max_length=2048, description="Image URL")
    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    taskInstruction: Optional[str] = Field(None, min_length=1, max_length=5000)
    price: Optional[float] = Field(None, ge=0, description="Registration fee")
    prizeMoney: Optional[float] = Field(None, ge=0)
    reward: Optional[str] = Field(None, max_length=255)
    tags: Optional[List[str]] = None
    endDate: Optional[datetime] = None
    isActive: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Contest title is required")
        return _reject_markup(v, "title")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if v not in CONTEST_CATEGORIES:
            raise ValueError(f"category must be one of {list(CONTEST_CATEGORIES)}")
        return v

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("image must be an http(s) URL")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        tags: List[str] = []
        for raw in v:
            tag = InputSanitizer.sanitize_string(raw, 50)
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("endDate")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            # Naive deadlines come from date pickers in UTC.
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(exclude_unset=True)
        if self.endDate is not None:
            payload["endDate"] = self.endDate.isoformat()
        return payload

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "ContestUpdate":
        """Validate the form fields of a stored contest, skipping empty ones."""
        present = {
            key: value
            for key, value in data.items()
            if key in cls.model_fields and value is not None and value != ""
        }
        return cls(**present)


class ContestInput(ContestUpdate):
    """Add contest form"""

    title: str = Field(..., min_length=1, max_length=150)
    category: str = Field(..., min_length=1, max_length=100)
    image: str = Field(..., min_length=1, max_length=2048, description="Image URL")
    description: str = Field(..., min_length=1, max_length=5000)
    taskInstruction: str = Field(..., min_length=1, max_length=5000)
    price: float = Field(0, ge=0, description="Registration fee")
    prizeMoney: float = Field(0, ge=0)
    tags: List[str] = Field(default_factory=list)
    endDate: datetime
    isActive: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump()
        payload["endDate"] = self.endDate.isoformat()
        return payload

    @classmethod
    def for_create(cls, data: Dict[str, Any], now: datetime | None = None) -> "ContestInput":
        """Validate a new contest; the deadline may not already be past."""
        model = cls(**data)
        now = now or datetime.now(timezone.utc)
        if model.endDate < now:
            raise ValueError("endDate cannot be in the past")
        return model


# ==================== ACCOUNTS ====================


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str
    photoURL: Optional[str] = Field(None, max_length=2048)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _reject_markup(v.strip(), "name")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters!")
        return v


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    photoURL: Optional[str] = Field(None, max_length=2048)
    bio: Optional[str] = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return _reject_markup(v, "name")


class RoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in USER_ROLES:
            raise ValueError(f"role must be one of {sorted(USER_ROLES)}, got {v}")
        return v


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_display_name(name: str) -> str:
        """Sanitize a user name for display, keeping letters with diacritics"""
        name = InputSanitizer.sanitize_string(name, 255)
        dangerous_chars = r'[<>{}[\]\\|;()&$`"\*\x00-\x1f\x7f]'
        name = re.sub(dangerous_chars, "", name)
        return name.strip()

    @staticmethod
    def normalize_email(email: Any) -> str:
        """Lower-cased, stripped email; empty string for anything else"""
        if not isinstance(email, str):
            return ""
        return email.strip().lower()

    @staticmethod
    def validate_and_sanitize_cmd(cmd_dict: dict) -> ValidatedCmd:
        """
        Validate and sanitize command dictionary

        Returns:
            ValidatedCmd: Validated command object

        Raises:
            ValueError: If validation fails
        """
        try:
            return ValidatedCmd(**cmd_dict)
        except PydanticValidationError as e:
            logger.warning(f"Command validation failed: {e}")
            raise ValueError(f"Invalid command: {str(e)}")


# ==================== EXPORT ====================

__all__ = [
    "COMMAND_TYPES",
    "CONTEST_CATEGORIES",
    "CONTEST_STATUSES",
    "USER_ROLES",
    "ValidatedCmd",
    "ContestInput",
    "ContestUpdate",
    "LoginInput",
    "RegisterInput",
    "ProfileUpdate",
    "RoleUpdate",
    "InputSanitizer",
]
