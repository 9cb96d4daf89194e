"""Vote recording and score recompute.

A target's ``score`` is a denormalized cache of the sum of its vote rows. Each
vote:

1. upserts the caller's vote row on ``(user_id, <target>_id)``; value 0
   deletes the row instead ("retract my vote")
2. re-reads every vote row for the target and sums the values
3. writes the sum back onto the target

The steps are separate store calls with no transaction. Two concurrent voters
on the same target can each write a sum that misses the other's row; the next
vote on the target corrects it. Score is ranking data, not a ledger.
"""

import logging
from dataclasses import dataclass

from agora_api.db.records import Table
from agora_api.db.store import DataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteTarget:
    """Where a family of votes lives."""

    table: Table
    vote_table: Table
    key: str


POST_VOTES = VoteTarget(table=Table.POSTS, vote_table=Table.POST_VOTES, key="post_id")
COMMENT_VOTES = VoteTarget(
    table=Table.COMMENTS, vote_table=Table.COMMENT_VOTES, key="comment_id"
)


def record_vote(store: DataStore, target: VoteTarget, user_id: str, target_id: str, value: int) -> None:
    """Store (or retract, for ``value == 0``) one user's vote on a target."""
    row_key = {"user_id": user_id, target.key: target_id}
    if value == 0:
        store.delete(target.vote_table, row_key)
    else:
        store.upsert(
            target.vote_table,
            {**row_key, "value": value},
            conflict_keys=("user_id", target.key),
        )


def recompute_score(store: DataStore, target: VoteTarget, target_id: str) -> int:
    """Sum all vote rows for ``target_id`` and write the total onto the target."""
    votes = store.select(target.vote_table, {target.key: target_id})
    score = sum(vote.value for vote in votes)
    store.update(target.table, {"id": target_id}, {"score": score})
    return score


def cast_vote(store: DataStore, target: VoteTarget, user_id: str, target_id: str, value: int) -> int:
    """Record a vote and return the target's recomputed score."""
    record_vote(store, target, user_id, target_id, value)
    score = recompute_score(store, target, target_id)

    logger.info(
        "vote.recorded",
        extra={
            "target": target.table.value,
            "target_id": target_id,
            "user_id": user_id,
            "value": value,
            "score": score,
        },
    )
    return score
