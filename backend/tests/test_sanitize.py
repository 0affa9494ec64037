"""Tests for free-text sanitization and record canonicalization."""
import pytest
from datetime import datetime, timezone

from finguard.utils.privacy import redact_record
from finguard.utils.sanitize import (
    MAX_TEXT_LENGTH,
    normalize_category,
    sanitize_account,
    sanitize_text,
    sanitize_transaction,
    sanitize_user,
)


@pytest.mark.parametrize("raw, expected", [
    ("<script>alert(1)</script>", "scriptalert(1)/script"),
    ("  Coffee at Joe's  ", "Coffee at Joe's"),
    ("javascript:alert(1)", "alert(1)"),
    ("JavaScript:void(0)", "void(0)"),
    ('img onerror=steal()', "img steal()"),
    ("Lunch", "Lunch"),
])
def test_sanitize_text_strips_markup(raw, expected):
    assert sanitize_text(raw) == expected


def test_sanitize_text_reassembled_patterns():
    """Fragments that rejoin into a pattern after one removal are removed too."""
    assert sanitize_text("javajavascript:script:x") == "x"
    assert sanitize_text("<<>>") == ""
    assert sanitize_text("oonclick=nclick=go") == "go"


def test_sanitize_text_truncates():
    text = "a" * (MAX_TEXT_LENGTH + 250)
    assert len(sanitize_text(text)) == MAX_TEXT_LENGTH


@pytest.mark.parametrize("raw", [
    "<b>bold</b> onload=x javascript:y",
    "  padded  ",
    "javajavascript:script:",
    ("x" * 999) + " <" + "y" * 20,
    "plain",
])
def test_sanitize_text_idempotent(raw):
    once = sanitize_text(raw)
    assert sanitize_text(once) == once


def test_sanitize_text_non_string_passthrough():
    assert sanitize_text(42) == 42
    assert sanitize_text(None) is None


def test_normalize_category():
    assert normalize_category("  Groceries ") == "groceries"
    assert normalize_category("SALARY") == "salary"
    assert normalize_category("crypto") == "other"
    assert normalize_category(None) == "other"
    assert normalize_category(7) == "other"


def test_sanitize_transaction():
    tx = {
        "description": " <b>Dinner</b> ",
        "amount": -42.5,
        "date": "2024-03-01T18:30:00.123456Z",
        "category": "Restaurant",
        "note": "onclick=split with Sam",
        "tags": ["<food>", "friends"],
    }
    clean = sanitize_transaction(tx)

    assert clean["description"] == "bDinner/b"
    assert clean["category"] == "restaurant"
    assert clean["note"] == "split with Sam"
    assert clean["tags"] == ["food", "friends"]
    assert clean["date"] == datetime(2024, 3, 1, 18, 30, 0, 123000, tzinfo=timezone.utc)
    assert clean["amount"] == -42.5
    # Input is not mutated
    assert tx["description"] == " <b>Dinner</b> "


def test_sanitize_transaction_drops_empty_optionals():
    clean = sanitize_transaction({"description": "x", "amount": 1, "note": "", "tags": []})
    assert "note" not in clean
    assert "tags" not in clean
    assert "date" not in clean


def test_sanitize_transaction_unparseable_date_falls_back_to_now():
    now = datetime(2024, 6, 15, 12, tzinfo=timezone.utc)
    clean = sanitize_transaction({"description": "x", "amount": 1, "date": "not a date"}, now=lambda: now)
    assert clean["date"] == now


def test_sanitize_account_and_user():
    account = sanitize_account({"name": "<Main>", "type": " Checking ", "balance": 10, "institution": ""})
    assert account == {"name": "Main", "type": "checking", "balance": 10}

    user = sanitize_user({"name": " Ada <Lovelace> ", "email": " ada@example.com "})
    assert user == {"name": "Ada Lovelace", "email": "ada@example.com"}


@pytest.mark.parametrize("field", ["account_number", "accountNumber"])
def test_sanitize_account_number_either_spelling(field):
    account = sanitize_account({"name": "Main", "type": "checking", field: " <1234> "})
    assert account[field] == "1234"


@pytest.mark.parametrize("field", ["account_number", "accountNumber"])
def test_redact_record_hides_account_number(field):
    redacted = redact_record({field: "GB29-1234", "amount": -5})
    assert redacted == {field: "****-****", "amount": -5}
