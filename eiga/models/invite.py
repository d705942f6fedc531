from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from eiga.core.database import Base
from eiga.core.timeutils import utc_now_naive


class InviteCode(Base):
    __tablename__ = "invites"
    __table_args__ = (
        # used_by and used_at are set together or not at all
        CheckConstraint(
            "(used_by IS NULL AND used_at IS NULL) OR (used_by IS NOT NULL AND used_at IS NOT NULL)",
            name="ck_invites_used_pair",
        ),
    )

    code: Mapped[str] = mapped_column(String(64), primary_key=True)

    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    used_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def is_redeemable(self, now: datetime) -> bool:
        return self.used_by is None and self.expires_at > now
