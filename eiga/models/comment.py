from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from eiga.core.database import Base
from eiga.core.timeutils import utc_now_naive


class Comment(Base):
    """A discussion node: a root comment (parent_id NULL) or a reply to a root.

    Replies of a deleted root are removed by the store (ON DELETE CASCADE).
    """

    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_film_created", "film_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # the discussed film; films live outside this package
    film_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    has_spoilers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timestamp_reference: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    is_highlighted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
