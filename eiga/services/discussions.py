"""Two-level discussion threads: root comments and their direct replies."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eiga.core.auth import Identity
from eiga.core.errors import CoreError, ErrorKind
from eiga.core.timeutils import utc_now_naive
from eiga.models.comment import Comment
from eiga.models.reaction import Reaction, ReactionType
from eiga.models.user import User
from eiga.realtime.fanout import FilmEvent, Notifier, NullNotifier
from eiga.services.validation import parse_timecode, validate_content

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass
class CommentPatch:
    """Fields to change on a comment. Omitted fields keep their value."""

    content: Any = _UNSET
    has_spoilers: Any = _UNSET
    timestamp_reference: Any = _UNSET


@dataclass
class CommentNode:
    comment: Comment
    author_username: str | None
    reactions: dict[str, int]
    my_reaction: str | None = None
    replies: list["CommentNode"] = field(default_factory=list)


class DiscussionTree:
    def __init__(self, db: Session, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or NullNotifier()

    def get(self, comment_id: int) -> Comment:
        comment = self.db.get(Comment, comment_id, populate_existing=True)
        if comment is None:
            raise CoreError(ErrorKind.NOT_FOUND, "Comment not found")
        return comment

    def create(
        self,
        film_id: int,
        author_id: int,
        content: str,
        parent_id: int | None = None,
        has_spoilers: bool = False,
        timestamp_reference: int | str | None = None,
    ) -> int:
        content = validate_content(content)
        seconds = parse_timecode(timestamp_reference)

        if parent_id is not None:
            parent = self.db.execute(
                select(Comment.id, Comment.parent_id, Comment.film_id).where(Comment.id == parent_id)
            ).first()
            if parent is None:
                raise CoreError(ErrorKind.PARENT_NOT_FOUND, "Parent comment not found")
            if parent.parent_id is not None:
                raise CoreError(ErrorKind.MAX_DEPTH, "Replies are limited to two levels.")
            if parent.film_id != film_id:
                raise CoreError(ErrorKind.INVALID, "Parent comment belongs to another film")

        comment = Comment(
            film_id=film_id,
            author_id=author_id,
            parent_id=parent_id,
            content=content,
            has_spoilers=bool(has_spoilers),
            timestamp_reference=seconds,
            is_highlighted=False,
        )
        self.db.add(comment)
        self._commit()

        self.notifier.notify(film_id, FilmEvent.DISCUSSION_NEW, comment_id=comment.id)
        return comment.id

    def edit(self, comment_id: int, editor: Identity, patch: CommentPatch) -> Comment:
        comment = self.get(comment_id)
        self._require_owner_or_admin(comment, editor)

        changes: dict[str, Any] = {}
        if patch.content is not _UNSET and patch.content is not None:
            changes["content"] = validate_content(patch.content)
        if patch.has_spoilers is not _UNSET and patch.has_spoilers is not None:
            changes["has_spoilers"] = bool(patch.has_spoilers)
        if patch.timestamp_reference is not _UNSET:
            seconds = parse_timecode(patch.timestamp_reference)
            if seconds is not None:
                changes["timestamp_reference"] = seconds

        if not changes:
            raise CoreError(ErrorKind.INVALID, "Nothing to update.")

        for name, value in changes.items():
            setattr(comment, name, value)
        comment.edited_at = utc_now_naive()
        self._commit()

        self.notifier.notify(comment.film_id, FilmEvent.DISCUSSION_UPDATE, comment_id=comment.id)
        return comment

    def delete(self, comment_id: int, actor: Identity) -> None:
        comment = self.get(comment_id)
        self._require_owner_or_admin(comment, actor)
        film_id = comment.film_id

        # replies and reactions go with it through ON DELETE CASCADE
        self.db.expunge(comment)
        try:
            self.db.execute(delete(Comment).where(Comment.id == comment_id))
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit()
        logger.info("comment %s deleted by user %s", comment_id, actor.id)

        self.notifier.notify(film_id, FilmEvent.DISCUSSION_UPDATE, comment_id=comment_id)

    def set_highlight(self, comment_id: int, actor: Identity, highlighted: bool = True) -> Comment:
        if not actor.is_admin:
            raise CoreError(ErrorKind.FORBIDDEN)
        comment = self.get(comment_id)
        comment.is_highlighted = bool(highlighted)
        self._commit()

        self.notifier.notify(
            comment.film_id,
            FilmEvent.HIGHLIGHT_UPDATE,
            comment_id=comment.id,
            highlighted=comment.is_highlighted,
        )
        return comment

    def list_threads(self, film_id: int, viewer_id: int | None = None) -> list[CommentNode]:
        """Roots in creation order, each carrying its replies.

        One query for the comments, one for reaction counts and one for the
        viewer's own reactions; the tree is assembled in memory.
        """
        rows = self.db.execute(
            select(Comment, User.username)
            .outerjoin(User, User.id == Comment.author_id)
            .where(Comment.film_id == film_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
            .execution_options(populate_existing=True)
        ).all()
        if not rows:
            return []

        ids = [c.id for (c, _) in rows]
        counts: dict[int, dict[str, int]] = defaultdict(lambda: {t.value: 0 for t in ReactionType})
        for comment_id, rtype, n in self.db.execute(
            select(Reaction.comment_id, Reaction.type, func.count())
            .where(Reaction.comment_id.in_(ids))
            .group_by(Reaction.comment_id, Reaction.type)
        ).all():
            counts[comment_id][rtype] = int(n)

        mine: dict[int, str] = {}
        if viewer_id is not None:
            mine = dict(
                self.db.execute(
                    select(Reaction.comment_id, Reaction.type).where(
                        Reaction.comment_id.in_(ids), Reaction.user_id == viewer_id
                    )
                ).all()
            )

        nodes = {
            c.id: CommentNode(
                comment=c,
                author_username=username,
                reactions=counts[c.id],
                my_reaction=mine.get(c.id),
            )
            for (c, username) in rows
        }

        roots: list[CommentNode] = []
        for c, _ in rows:
            node = nodes[c.id]
            if c.parent_id is None:
                roots.append(node)
            else:
                parent = nodes.get(c.parent_id)
                if parent is not None:
                    parent.replies.append(node)
        return roots

    @staticmethod
    def _require_owner_or_admin(comment: Comment, actor: Identity) -> None:
        if comment.author_id != actor.id and not actor.is_admin:
            raise CoreError(ErrorKind.FORBIDDEN)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
