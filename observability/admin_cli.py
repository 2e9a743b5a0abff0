"""Lightweight CLI for inspecting interviews and running maintenance sweeps."""
from __future__ import annotations

import argparse
from typing import List, Optional

from services.interview_machine import InterviewStateMachine
from storage.sqlite import connect


def tail_interviews(limit: int = 20) -> None:
    conn = connect()
    try:
        rows = conn.execute(
            """
            SELECT started_at, id, owner_id, candidate_name, position, status, question_index, max_questions,
                   overall_score
            FROM interviews
            ORDER BY started_at DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        for row in rows:
            score = "-" if row["overall_score"] is None else f"{row['overall_score']:.1f}"
            print(
                f"[{row['started_at']}] {row['id']} owner={row['owner_id']} {row['candidate_name']} / "
                f"{row['position']} -> {row['status']} q={row['question_index']}/{row['max_questions']} score={score}"
            )
    finally:
        conn.close()


def tail_subscriptions(limit: int = 20) -> None:
    conn = connect()
    try:
        rows = conn.execute(
            """
            SELECT updated_at, id, owner_id, plan_id, status, interviews_remaining, total_interviews, expires_at
            FROM subscriptions
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        for row in rows:
            print(
                f"[{row['updated_at']}] {row['id']} owner={row['owner_id']} plan={row['plan_id']} "
                f"{row['status']} remaining={row['interviews_remaining']}/{row['total_interviews']} "
                f"expires={row['expires_at'] or '-'}"
            )
    finally:
        conn.close()


def reap_idle(seconds: float, machine: Optional[InterviewStateMachine] = None) -> int:
    results = (machine or InterviewStateMachine()).reap_idle(seconds)
    for result in results:
        print(f"cancelled {result.interview_id} refunded={result.refunded}")
    return len(results)


def expire_subscriptions(machine: Optional[InterviewStateMachine] = None) -> int:
    expired = (machine or InterviewStateMachine()).ledger.expire_due()
    print(f"expired {expired} subscription(s)")
    return expired


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-interviews", type=int, help="Show the latest interviews")
    parser.add_argument("--tail-subscriptions", type=int, help="Show the most recently changed subscriptions")
    parser.add_argument("--reap-idle", type=float, metavar="SECONDS", help="Cancel interviews idle this long")
    parser.add_argument("--expire-subscriptions", action="store_true", help="Expire subscriptions past their date")
    args = parser.parse_args(argv)

    if args.tail_interviews:
        tail_interviews(args.tail_interviews)
    if args.tail_subscriptions:
        tail_subscriptions(args.tail_subscriptions)
    if args.reap_idle is not None:
        reap_idle(args.reap_idle)
    if args.expire_subscriptions:
        expire_subscriptions()


if __name__ == "__main__":
    main()
