"""
services/group_service.py — Group lifecycle and password gate.

Groups are selected by name and unlocked with a shared password. The password
is hashed with bcrypt on create/update and only ever compared through
bcrypt.checkpw(). The hash never leaves this module.

Rules:
  - Group listings never include password hashes.
  - A group can only be deleted once it has no active members.
  - Deleting a group removes its archived members and all its expenses.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
    The bcrypt cost factor is passed in by the route (from app config).
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.models.group import Group
from shareledger.app.models.member import Member
from shareledger.app.services.ledger_service import get_group_or_404


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(raw_password: str, log_rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=log_rounds)
    return bcrypt.hashpw(raw_password.encode("utf-8"), salt).decode("utf-8")


def _check_password(raw_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            raw_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash: treat as a mismatch, never as a server error.
        return False


def _active_member_count(group_id: int, session: Session) -> int:
    stmt = select(func.count(Member.id)).where(
        Member.group_id == group_id,
        Member.archived_at.is_(None),
    )
    return session.execute(stmt).scalar_one()


def _build_group_dict(group: Group, member_count: int) -> dict:
    """Serialises a Group to a plain dict. Never includes the password hash."""
    return {
        "id": group.id,
        "name": group.name,
        "created_by": group.created_by,
        "member_count": member_count,
        "created_at": group.created_at.isoformat() if group.created_at else None,
        "updated_at": group.updated_at.isoformat() if group.updated_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        name: str,
        password: str,
        session: Session,
        created_by: str | None = None,
        log_rounds: int = 12,
) -> dict:
    """
    Creates a new, empty group protected by `password`.

    Returns: group dict with member_count 0.
    """
    group = Group(
        name=name.strip(),
        password_hash=_hash_password(password, log_rounds),
        created_by=(created_by or "").strip() or "System",
    )
    session.add(group)
    session.flush()
    session.refresh(group)
    return _build_group_dict(group, 0)


def list_groups(session: Session) -> list[dict]:
    """
    Returns every group ordered by name, each with its active member count.

    One grouped count query instead of one count per group.
    """
    counts_stmt = (
        select(Member.group_id, func.count(Member.id))
        .where(Member.archived_at.is_(None))
        .group_by(Member.group_id)
    )
    counts = dict(session.execute(counts_stmt).all())

    groups = session.execute(
        select(Group).order_by(Group.name.asc(), Group.id.asc())
    ).scalars().all()

    return [_build_group_dict(g, counts.get(g.id, 0)) for g in groups]


def get_group(group_id: int, session: Session) -> dict:
    group = get_group_or_404(group_id, session)
    return _build_group_dict(group, _active_member_count(group_id, session))


def verify_group_password(group_id: int, password: str, session: Session) -> dict:
    """
    Checks `password` against the group's stored hash.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)  -- group does not exist.
        AppError(INVALID_PASSWORD, 401) -- password does not match.
    """
    group = get_group_or_404(group_id, session)

    if not _check_password(password, group.password_hash):
        raise AppError(
            ErrorCode.INVALID_PASSWORD,
            "Incorrect password.",
            401,
            field="password",
        )

    return _build_group_dict(group, _active_member_count(group_id, session))


def update_group(
        group_id: int,
        data: dict,
        session: Session,
        log_rounds: int = 12,
) -> dict:
    """
    Renames the group and/or replaces its password.

    Args:
        data: validated dict from UpdateGroupSchema; keys "name" and
              "password" are both optional.
    """
    group = get_group_or_404(group_id, session)

    if data.get("name") is not None:
        group.name = data["name"].strip()
    if data.get("password") is not None:
        group.password_hash = _hash_password(data["password"], log_rounds)

    group.updated_at = datetime.now(timezone.utc)
    session.flush()

    return _build_group_dict(group, _active_member_count(group_id, session))


def delete_group(group_id: int, session: Session) -> None:
    """
    Deletes a group that has no active members.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)   -- group does not exist.
        AppError(GROUP_HAS_MEMBERS, 409) -- active members remain.
    """
    group = get_group_or_404(group_id, session)

    member_count = _active_member_count(group_id, session)
    if member_count > 0:
        raise AppError(
            ErrorCode.GROUP_HAS_MEMBERS,
            f"Cannot delete group with {member_count} existing member(s). "
            f"Remove all members first.",
            409,
        )

    session.delete(group)
    session.flush()
