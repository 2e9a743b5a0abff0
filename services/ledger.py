"""Subscription quota ledger.

Every change to ``interviews_remaining`` is a single conditional UPDATE, so two
concurrent consumers can never both take the last unit.
"""
from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Dict, List, Optional

from config.plans import Plan, load_plans
from services.errors import NotFound, QuotaExhausted, StateConflict, ValidationFailed
from services.models import Subscription, shift, utc_now
from storage import subscriptions as store
from storage.sqlite import get_conn, transaction

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("expired", "cancelled")


class Ledger:
    def __init__(self, plans: Optional[Dict[str, Plan]] = None) -> None:
        self.plans = plans if plans is not None else load_plans()

    def open_subscription(self, owner_id: str, plan_id: str) -> Subscription:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise ValidationFailed(f"unknown plan '{plan_id}'")
        if not owner_id:
            raise ValidationFailed("owner id is required")
        now = utc_now()
        expires_at = shift(now, days=plan.trial_days) if plan.trial_days else None
        with get_conn() as conn:
            subscription = store.insert_subscription(
                conn,
                id=uuid.uuid4().hex,
                owner_id=owner_id,
                plan_id=plan.plan_id,
                plan_name=plan.name,
                total_interviews=plan.interviews,
                expires_at=expires_at,
                created_at=now,
            )
        logger.info("Opened subscription %s plan=%s owner=%s", subscription.id, plan_id, owner_id)
        return subscription

    def get(self, subscription_id: str) -> Subscription:
        with get_conn(immediate=False) as conn:
            subscription = store.get_subscription(conn, subscription_id)
        if subscription is None:
            raise NotFound(f"subscription {subscription_id} not found")
        return subscription

    def list_for_owner(self, owner_id: str) -> List[Subscription]:
        with get_conn(immediate=False) as conn:
            return store.list_for_owner(conn, owner_id)

    def consume(self, subscription_id: str, *, conn: Optional[sqlite3.Connection] = None) -> None:
        """Take one interview unit.

        Raises:
            QuotaExhausted: nothing left, or the subscription is not active.
            NotFound: unknown subscription id.
        """

        with transaction(conn) as tx:
            if store.decrement_if_available(tx, subscription_id, utc_now()):
                return
            if store.get_subscription(tx, subscription_id) is None:
                raise NotFound(f"subscription {subscription_id} not found")
        raise QuotaExhausted("no interviews remaining on an active subscription")

    def consume_for_owner(self, owner_id: str) -> str:
        """Take one unit from the owner's oldest usable subscription and return its id."""

        with get_conn() as conn:
            for subscription_id in store.usable_ids(conn, owner_id, utc_now()):
                if store.decrement_if_available(conn, subscription_id, utc_now()):
                    logger.info("Consumed one interview from %s owner=%s", subscription_id, owner_id)
                    return subscription_id
        raise QuotaExhausted("no interviews remaining on an active subscription")

    def refund(self, subscription_id: str, *, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Return one unit; False when the subscription is already full."""

        with transaction(conn) as tx:
            refunded = store.increment_bounded(tx, subscription_id, utc_now())
        if refunded:
            logger.info("Refunded one interview to %s", subscription_id)
        return refunded

    def transition(self, subscription_id: str, status: str) -> Subscription:
        if status not in CLOSED_STATUSES:
            raise ValidationFailed(f"cannot move a subscription to '{status}'")
        now = utc_now()
        with get_conn() as conn:
            current = store.get_subscription(conn, subscription_id)
            if current is None:
                raise NotFound(f"subscription {subscription_id} not found")
            if not store.set_status(conn, subscription_id, status, now):
                raise StateConflict(f"subscription {subscription_id} is already {current.status}")
            return current.model_copy(update={"status": status, "updated_at": now})

    def expire_due(self, now: Optional[str] = None) -> int:
        with get_conn() as conn:
            expired = store.expire_due(conn, now or utc_now())
        if expired:
            logger.info("Expired %d subscription(s)", expired)
        return expired


__all__ = ["Ledger"]
