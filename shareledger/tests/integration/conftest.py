"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite by default (TestingConfig). Set
    TEST_DATABASE_URL to run the same suite against PostgreSQL.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_group(client, ...)    → group dict
  - make_member(client, ...)   → member dict
  - make_expense(client, ...)  → HTTP response
  - set_paid(client, ...)      → HTTP response
  - data_of(resp)              → the envelope's "data"

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from shareledger.app import create_app
from shareledger.app.extensions import db as _db

GROUP_PASSWORD = "hunter22"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the whole run."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents.
    """
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM expense_payments"))
            conn.execute(text("DELETE FROM expense_splits"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM members"))
            conn.execute(text("DELETE FROM groups"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def data_of(resp):
    return resp.get_json()["data"]


def make_group(client, name: str = "Test Group", password: str = GROUP_PASSWORD) -> dict:
    """Creates a group and returns the group data dict."""
    resp = client.post(
        "/api/v1/groups",
        json={"name": name, "password": password},
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return data_of(resp)


def make_member(client, group_id: int, name: str) -> dict:
    """Adds a member to a group and returns the member data dict."""
    resp = client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"name": name},
    )
    assert resp.status_code == 201, f"make_member failed: {resp.get_json()}"
    return data_of(resp)


def make_expense(
    client,
    group_id: int,
    paid_by_member_id: int,
    amount: str,
    split_with: list[int],
    description: str = "Test Expense",
    date: str | None = None,
):
    """Creates an expense and returns the HTTP response."""
    payload: dict = {
        "paid_by_member_id": paid_by_member_id,
        "description": description,
        "amount": amount,
        "split_with": split_with,
    }
    if date is not None:
        payload["date"] = date

    return client.post(f"/api/v1/groups/{group_id}/expenses", json=payload)


def set_paid(client, expense_id: int, member_id: int, paid: bool = True):
    """Marks one member's share of an expense paid (or unpaid)."""
    return client.patch(
        f"/api/v1/expenses/{expense_id}/payments/{member_id}",
        json={"paid": paid},
    )


def setup_trio(client) -> tuple[dict, dict, dict, dict]:
    """A group with three members. Returns (group, alice, bob, carol)."""
    group = make_group(client)
    alice = make_member(client, group["id"], "Alice")
    bob = make_member(client, group["id"], "Bob")
    carol = make_member(client, group["id"], "Carol")
    return group, alice, bob, carol
