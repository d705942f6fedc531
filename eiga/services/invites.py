"""Invite ledger: single-use, time-bounded admission codes.

Redemption creates the member and consumes the code in one transaction. The
row is locked while it is checked (``SELECT ... FOR UPDATE``; ``BEGIN
IMMEDIATE`` on SQLite), and the final write is a conditional UPDATE that only
matches a row that is still unused and unexpired. If that UPDATE matches
nothing the whole transaction, including the new user, is rolled back.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal
from urllib.parse import quote

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eiga.core.config import Settings
from eiga.core.errors import CoreError, ErrorKind
from eiga.core.timeutils import utc_now_naive
from eiga.models.invite import InviteCode
from eiga.models.user import User
from eiga.services.mailer import Mailer
from eiga.services.signin import send_sign_in_link
from eiga.services.validation import (
    USERNAME_RE,
    is_valid_invite_format,
    normalize_invite_code,
)

logger = logging.getLogger(__name__)

# no I/O/0/1: codes are read off screens and typed by hand
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

MAX_BATCH = 20
MAX_EXPIRY_DAYS = 90


def generate_code(segments: int = 3, segment_length: int = 4, prefix: str = "EIGA") -> str:
    body = "-".join(
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(segment_length)) for _ in range(segments)
    )
    return f"{prefix}-{body}" if prefix else body


def is_valid_format(code: str) -> bool:
    return is_valid_invite_format(code)


@dataclass(frozen=True)
class RedeemOk:
    user: User
    ok: Literal[True] = True


@dataclass(frozen=True)
class RedeemErr:
    kind: ErrorKind
    ok: Literal[False] = False


RedeemResult = RedeemOk | RedeemErr

InviteStatus = Literal["valid", "used", "expired", "invalid_code"]


class InviteLedger:
    def __init__(self, db: Session, settings: Settings, mailer: Mailer | None = None):
        self.db = db
        self.settings = settings
        self.mailer = mailer

    # --- redemption -------------------------------------------------------

    def redeem(
        self,
        code: str,
        email: str,
        username: str,
        defer: Callable[..., None] | None = None,
    ) -> RedeemResult:
        """Consume ``code`` and create the member account, all or nothing.

        ``defer`` schedules the sign-in email after the response (FastAPI
        ``BackgroundTasks.add_task``); without it the email is sent inline.
        Either way a mail failure never undoes the redemption.
        """
        code = normalize_invite_code(code)
        if not is_valid_invite_format(code):
            return RedeemErr(ErrorKind.INVALID_CODE)

        email = email.strip().lower()
        username = username.strip()
        if not USERNAME_RE.match(username):
            return RedeemErr(ErrorKind.INVALID)

        try:
            outcome = self._redeem_locked(code, email, username)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("invite %s: redemption failed", code)
            return RedeemErr(ErrorKind.CREATE_FAILED)

        if isinstance(outcome, RedeemErr):
            logger.info("invite %s: redemption refused (%s)", code, outcome.kind.value)
            return outcome

        logger.info("invite %s redeemed by user %s", code, outcome.user.id)
        if defer is not None:
            defer(self.send_magic_link, outcome.user.id, outcome.user.email)
        else:
            self.send_magic_link(outcome.user.id, outcome.user.email)
        return outcome

    def _redeem_locked(self, code: str, email: str, username: str) -> RedeemResult:
        now = utc_now_naive()
        self._begin_locked()

        invite = self.db.execute(
            select(InviteCode).where(InviteCode.code == code).with_for_update()
        ).scalar_one_or_none()

        failure = self._check_redeemable(invite, now)
        if failure is None:
            if self._exists(User.email == email):
                failure = ErrorKind.EMAIL_IN_USE
            elif self._exists(User.username == username):
                failure = ErrorKind.USERNAME_IN_USE
        if failure is not None:
            self.db.rollback()
            return RedeemErr(failure)

        user = User(email=email, username=username, role="member", invite_code=code, is_active=True)
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as e:
            # a concurrent sign-up took the email or username after the pre-check
            self.db.rollback()
            return RedeemErr(self._classify_integrity_error(e, email, username))

        consumed = self.db.execute(
            update(InviteCode)
            .where(
                InviteCode.code == code,
                InviteCode.used_by.is_(None),
                InviteCode.expires_at > now,
            )
            .values(used_by=user.id, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            self.db.rollback()
            return RedeemErr(self._classify_lost_race(code))

        self.db.commit()
        return RedeemOk(user)

    def _begin_locked(self) -> None:
        # redemption runs in its own transaction so the lock covers every read below
        self.db.commit()
        if self.db.get_bind().dialect.name == "sqlite":
            # SQLite has no row locks: take the write lock up front instead
            self.db.execute(text("BEGIN IMMEDIATE"))

    @staticmethod
    def _check_redeemable(invite: InviteCode | None, now: datetime) -> ErrorKind | None:
        if invite is None:
            return ErrorKind.INVALID_CODE
        if invite.is_redeemable(now):
            return None
        if invite.used_by is not None:
            return ErrorKind.USED
        return ErrorKind.EXPIRED

    def _exists(self, clause) -> bool:
        return self.db.execute(select(User.id).where(clause).limit(1)).first() is not None

    def _classify_integrity_error(self, e: IntegrityError, email: str, username: str) -> ErrorKind:
        message = str(e.orig).lower()
        if "email" in message or self._exists(User.email == email):
            return ErrorKind.EMAIL_IN_USE
        if "username" in message or self._exists(User.username == username):
            return ErrorKind.USERNAME_IN_USE
        return ErrorKind.CREATE_FAILED

    def _classify_lost_race(self, code: str) -> ErrorKind:
        invite = self.db.get(InviteCode, code, populate_existing=True)
        return self._check_redeemable(invite, utc_now_naive()) or ErrorKind.USED

    def send_magic_link(self, user_id: int, email: str) -> bool:
        return send_sign_in_link(self.settings, self.mailer, user_id, email)

    # --- read side --------------------------------------------------------

    def get_status(self, code: str) -> InviteStatus:
        code = normalize_invite_code(code)
        if not is_valid_invite_format(code):
            return "invalid_code"
        invite = self.db.get(InviteCode, code)
        failure = self._check_redeemable(invite, utc_now_naive())
        return "valid" if failure is None else failure.value

    def get(self, code: str) -> InviteCode:
        invite = self.db.get(InviteCode, normalize_invite_code(code))
        if invite is None:
            raise CoreError(ErrorKind.NOT_FOUND, "Invite not found")
        return invite

    def list_codes(self) -> list[InviteCode]:
        return list(
            self.db.execute(select(InviteCode).order_by(InviteCode.created_at.desc())).scalars().all()
        )

    # --- admin housekeeping -----------------------------------------------

    def issue_codes(self, created_by: int | None, quantity: int, expires_in_days: int | None = None) -> list[InviteCode]:
        if expires_in_days is None:
            expires_in_days = self.settings.INVITE_DEFAULT_DAYS
        if not 1 <= quantity <= MAX_BATCH:
            raise CoreError(ErrorKind.INVALID, f"quantity must be between 1 and {MAX_BATCH}")
        if not 1 <= expires_in_days <= MAX_EXPIRY_DAYS:
            raise CoreError(ErrorKind.INVALID, f"expires_in_days must be between 1 and {MAX_EXPIRY_DAYS}")

        now = utc_now_naive()
        expires_at = now + timedelta(days=expires_in_days)
        codes: set[str] = set()
        while len(codes) < quantity:
            codes.add(generate_code(prefix=self.settings.INVITE_PREFIX))

        invites = [
            InviteCode(code=c, created_by=created_by, created_at=now, expires_at=expires_at)
            for c in sorted(codes)
        ]
        try:
            self.db.add_all(invites)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("issued %d invite code(s), expiring %s", len(invites), expires_at.isoformat())
        return invites

    def redeem_url(self, code: str) -> str:
        return f"{self.settings.BASE_URL.rstrip('/')}/invite/{quote(code, safe='')}"

    def send_invite(self, created_by: int | None, to_email: str, expires_in_days: int | None = None) -> InviteCode:
        """Issue one code and email its redeem page to ``to_email``.

        The code exists even if the email cannot be delivered.
        """
        invite = self.issue_codes(created_by, 1, expires_in_days)[0]
        days = (invite.expires_at - invite.created_at).days
        to_email = to_email.strip().lower()

        if self.mailer is None:
            logger.warning("invite %s: no mailer configured, not sent", invite.code)
            return invite
        try:
            self.mailer.send_invite(to_email, self.redeem_url(invite.code), days)
        except Exception:
            logger.warning("invite %s: failed to email %s", invite.code, to_email, exc_info=True)
        else:
            logger.info("invite %s sent to %s", invite.code, to_email)
        return invite

    def revoke(self, code: str) -> InviteCode:
        """Expire the code now. A used code keeps its redemption record."""
        invite = self.get(code)
        invite.expires_at = utc_now_naive()
        self._commit()
        logger.info("invite %s revoked", invite.code)
        return invite

    def extend(self, code: str, days: int) -> InviteCode:
        if not 1 <= days <= MAX_EXPIRY_DAYS:
            raise CoreError(ErrorKind.INVALID, f"extend_days must be between 1 and {MAX_EXPIRY_DAYS}")
        invite = self.get(code)
        base = max(utc_now_naive(), invite.expires_at)
        invite.expires_at = base + timedelta(days=days)
        self._commit()
        logger.info("invite %s extended to %s", invite.code, invite.expires_at.isoformat())
        return invite

    def delete(self, code: str) -> None:
        code = normalize_invite_code(code)
        try:
            result = self.db.execute(delete(InviteCode).where(InviteCode.code == code))
            if result.rowcount == 0:
                self.db.rollback()
                raise CoreError(ErrorKind.NOT_FOUND, "Invite not found")
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("invite %s deleted", code)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
