"""Reaction ledger: one reaction per member per comment, written as a single upsert."""

import logging
from dataclasses import dataclass

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eiga.core.errors import CoreError, ErrorKind
from eiga.core.timeutils import utc_now_naive
from eiga.models.comment import Comment
from eiga.models.reaction import Reaction, ReactionType
from eiga.realtime.fanout import FilmEvent, Notifier, NullNotifier

logger = logging.getLogger(__name__)

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class SetReactionResult:
    created: bool
    changed: bool


@dataclass(frozen=True)
class RemoveReactionResult:
    removed: bool


class ReactionLedger:
    """At most one reaction per (user, comment); the unique constraint is the lock."""

    def __init__(self, db: Session, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or NullNotifier()

    def _film_of(self, comment_id: int) -> int:
        film_id = self.db.execute(select(Comment.film_id).where(Comment.id == comment_id)).scalar_one_or_none()
        if film_id is None:
            raise CoreError(ErrorKind.NOT_FOUND, "Comment not found")
        return film_id

    def get_reaction(self, user_id: int, comment_id: int) -> str | None:
        return self.db.execute(
            select(Reaction.type).where(Reaction.user_id == user_id, Reaction.comment_id == comment_id)
        ).scalar_one_or_none()

    def set_reaction(self, user_id: int, comment_id: int, type: ReactionType | str) -> SetReactionResult:
        try:
            rtype = ReactionType(type)
        except ValueError:
            raise CoreError(ErrorKind.INVALID, f"Unknown reaction type: {type!r}") from None

        film_id = self._film_of(comment_id)
        previous = self.get_reaction(user_id, comment_id)

        try:
            self.db.execute(self._upsert_statement(user_id, comment_id, rtype))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        created = previous is None
        changed = created or previous != rtype.value
        if changed:
            self.notifier.notify(
                film_id,
                FilmEvent.REACTION_NEW,
                comment_id=comment_id,
                user_id=user_id,
                type=rtype.value,
            )
        return SetReactionResult(created=created, changed=changed)

    def _upsert_statement(self, user_id: int, comment_id: int, rtype: ReactionType):
        dialect = self.db.get_bind().dialect.name
        builder = _UPSERT_BUILDERS.get(dialect)
        if builder is None:
            raise CoreError(ErrorKind.SERVER, f"reaction upsert is not supported on {dialect}")

        stmt = builder(Reaction).values(
            user_id=user_id,
            comment_id=comment_id,
            type=rtype.value,
            created_at=utc_now_naive(),
        )
        return stmt.on_conflict_do_update(
            index_elements=["user_id", "comment_id"],
            set_={"type": stmt.excluded["type"]},
        )

    def remove_reaction(self, user_id: int, comment_id: int) -> RemoveReactionResult:
        film_id = self._film_of(comment_id)

        try:
            result = self.db.execute(
                delete(Reaction).where(and_(Reaction.user_id == user_id, Reaction.comment_id == comment_id))
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        removed = result.rowcount > 0
        if removed:
            self.notifier.notify(film_id, FilmEvent.REACTION_REMOVE, comment_id=comment_id, user_id=user_id)
        return RemoveReactionResult(removed=removed)

    def list_for_comment(self, comment_id: int) -> list[Reaction]:
        self._film_of(comment_id)
        return list(
            self.db.execute(
                select(Reaction).where(Reaction.comment_id == comment_id).order_by(Reaction.created_at.asc())
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
