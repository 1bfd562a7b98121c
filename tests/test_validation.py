from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from contesthub_core.validation import (
    ContestInput,
    ContestUpdate,
    InputSanitizer,
    ProfileUpdate,
    RegisterInput,
    RoleUpdate,
    ValidatedCmd,
)


def _contest_form(**overrides):
    data = {
        "title": "UI Design Challenge",
        "category": "Design",
        "image": "https://example.com/image.jpg",
        "description": "Design a landing page",
        "taskInstruction": "Upload a Figma link",
        "price": 10,
        "prizeMoney": 500,
        "tags": ["ui", " UI ", "ui", ""],
        "endDate": "2026-02-01T00:00:00",
    }
    data.update(overrides)
    return data


def test_command_types_are_restricted():
    with pytest.raises(ValidationError):
        ValidatedCmd(type="START_TIMER")
    assert ValidatedCmd(type="REGISTER").type == "REGISTER"


def test_submit_task_needs_text():
    with pytest.raises(ValidationError):
        ValidatedCmd(type="SUBMIT_TASK", submission="   ")
    cmd = ValidatedCmd(type="SUBMIT_TASK", submission="  https://x.io/entry ")
    assert cmd.submission == "https://x.io/entry"


def test_declare_winner_and_status_requirements():
    with pytest.raises(ValidationError):
        ValidatedCmd(type="DECLARE_WINNER")
    with pytest.raises(ValidationError):
        ValidatedCmd(type="SET_STATUS", status="archived")
    assert ValidatedCmd(type="SET_STATUS", status=" Confirmed ").status == "confirmed"


def test_validate_and_sanitize_cmd_wraps_errors():
    with pytest.raises(ValueError, match="Invalid command"):
        InputSanitizer.validate_and_sanitize_cmd({"type": "UPDATE_CONTEST"})
    cmd = InputSanitizer.validate_and_sanitize_cmd(
        {"type": "UPDATE_CONTEST", "fields": {"title": "x"}}
    )
    assert cmd.fields == {"title": "x"}


def test_contest_input_normalizes_and_serializes():
    form = ContestInput(**_contest_form())
    assert form.tags == ["ui", "UI"]
    assert form.endDate.tzinfo is not None
    payload = form.to_payload()
    assert payload["endDate"] == "2026-02-01T00:00:00+00:00"
    assert payload["price"] == 10.0


@pytest.mark.parametrize(
    "override",
    [
        {"title": "  "},
        {"title": "<script>alert(1)</script>"},
        {"category": "Cooking"},
        {"image": "ftp://example.com/a.png"},
        {"price": -1},
        {"prizeMoney": -5},
    ],
)
def test_contest_input_rejects_bad_fields(override):
    with pytest.raises(ValidationError):
        ContestInput(**_contest_form(**override))


def test_contest_for_create_rejects_past_deadline():
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        ContestInput.for_create(_contest_form(), now=now)
    earlier = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert ContestInput.for_create(_contest_form(), now=earlier).title == "UI Design Challenge"


def test_contest_update_skips_empty_stored_fields():
    record = {
        "_id": "nd",
        "title": " Renamed ",
        "category": "Design",
        "image": "",
        "taskInstruction": None,
        "endDate": None,
        "price": 0,
        "participants": ["a@example.com"],
    }
    payload = ContestUpdate.from_record(record).to_payload()
    assert payload == {"title": "Renamed", "category": "Design", "price": 0.0}

    dated = ContestUpdate.from_record({"endDate": "2026-02-01T00:00:00"}).to_payload()
    assert dated == {"endDate": "2026-02-01T00:00:00+00:00"}

    with pytest.raises(ValidationError):
        ContestUpdate.from_record({"category": "Cooking"})


def test_account_inputs():
    with pytest.raises(ValidationError, match="at least 6 characters"):
        RegisterInput(name="Ann", email="ann@example.com", password="123")
    with pytest.raises(ValidationError):
        RegisterInput(name="Ann", email="not-an-email", password="123456")
    assert RoleUpdate(role=" Creator ").role == "creator"
    with pytest.raises(ValidationError):
        RoleUpdate(role="superuser")
    assert ProfileUpdate(bio="hi").model_dump(exclude_none=True) == {"bio": "hi"}
    with pytest.raises(ValidationError):
        ProfileUpdate(name="<b>x</b>")


def test_sanitizer_helpers():
    assert InputSanitizer.sanitize_string("  a\0b  ") == "ab"
    assert InputSanitizer.sanitize_display_name("Ștefan <O'Neil>") == "Ștefan O'Neil"
    assert InputSanitizer.normalize_email("  Ann@Example.COM ") == "ann@example.com"
    assert InputSanitizer.normalize_email(None) == ""
