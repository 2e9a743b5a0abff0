"""Persistence helpers for subscription quota rows."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from pydantic import BaseModel, Field

from services.models import Subscription

_COLUMNS = (
    "id, owner_id, plan_id, plan_name, interviews_remaining, total_interviews, "
    "status, expires_at, created_at, updated_at"
)

# Active and not past its expiry.
_USABLE = "status = 'active' AND (expires_at IS NULL OR expires_at > ?)"


class SubscriptionPayload(BaseModel):
    id: str
    owner_id: str = Field(min_length=1)
    plan_id: str
    plan_name: str
    total_interviews: int = Field(ge=1)
    expires_at: Optional[str] = None
    created_at: str


def insert_subscription(conn: sqlite3.Connection, **data) -> Subscription:
    """Insert a fully stocked active subscription."""

    payload = SubscriptionPayload(**data)
    conn.execute(
        f"""INSERT INTO subscriptions ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?, ?)""",
        (
            payload.id,
            payload.owner_id,
            payload.plan_id,
            payload.plan_name,
            payload.total_interviews,
            payload.total_interviews,
            payload.expires_at,
            payload.created_at,
            payload.created_at,
        ),
    )
    return Subscription(
        status="active",
        interviews_remaining=payload.total_interviews,
        updated_at=payload.created_at,
        **payload.model_dump(),
    )


def _row(row: sqlite3.Row) -> Subscription:
    return Subscription(**dict(row))


def get_subscription(conn: sqlite3.Connection, subscription_id: str) -> Optional[Subscription]:
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM subscriptions WHERE id = ?", (subscription_id,)
    ).fetchone()
    return _row(row) if row else None


def list_for_owner(conn: sqlite3.Connection, owner_id: str) -> List[Subscription]:
    rows = conn.execute(
        f"SELECT {_COLUMNS} FROM subscriptions WHERE owner_id = ? ORDER BY created_at ASC, id ASC",
        (owner_id,),
    ).fetchall()
    return [_row(row) for row in rows]


def usable_ids(conn: sqlite3.Connection, owner_id: str, now: str) -> List[str]:
    """Ids of the owner's subscriptions that can still be drawn from, oldest first."""

    rows = conn.execute(
        f"""SELECT id FROM subscriptions
            WHERE owner_id = ? AND interviews_remaining > 0 AND {_USABLE}
            ORDER BY created_at ASC, id ASC""",
        (owner_id, now),
    ).fetchall()
    return [row["id"] for row in rows]


def decrement_if_available(conn: sqlite3.Connection, subscription_id: str, now: str) -> bool:
    """Conditionally take one unit; False when nothing was left to take."""

    cur = conn.execute(
        f"""UPDATE subscriptions
            SET interviews_remaining = interviews_remaining - 1, updated_at = ?
            WHERE id = ? AND interviews_remaining > 0 AND {_USABLE}""",
        (now, subscription_id, now),
    )
    return cur.rowcount == 1


def increment_bounded(conn: sqlite3.Connection, subscription_id: str, now: str) -> bool:
    """Return one unit; never exceeds the subscription total."""

    cur = conn.execute(
        """UPDATE subscriptions
           SET interviews_remaining = interviews_remaining + 1, updated_at = ?
           WHERE id = ? AND interviews_remaining < total_interviews""",
        (now, subscription_id),
    )
    return cur.rowcount == 1


def set_status(conn: sqlite3.Connection, subscription_id: str, status: str, now: str) -> bool:
    """Move an active subscription to a closed status."""

    cur = conn.execute(
        "UPDATE subscriptions SET status = ?, updated_at = ? WHERE id = ? AND status = 'active'",
        (status, now, subscription_id),
    )
    return cur.rowcount == 1


def expire_due(conn: sqlite3.Connection, now: str) -> int:
    cur = conn.execute(
        """UPDATE subscriptions SET status = 'expired', updated_at = ?
           WHERE status = 'active' AND expires_at IS NOT NULL AND expires_at <= ?""",
        (now, now),
    )
    return int(cur.rowcount)
