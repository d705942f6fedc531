"""Sign-in links for members who already have an account.

A request always looks the same to the caller, whether or not the address
belongs to an active member.
"""

import logging
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from eiga.core.config import Settings
from eiga.core.security import build_magic_link
from eiga.models.user import User
from eiga.services.mailer import Mailer

logger = logging.getLogger(__name__)


def send_sign_in_link(
    settings: Settings,
    mailer: Mailer | None,
    user_id: int,
    email: str,
    callback_path: str | None = None,
) -> bool:
    if mailer is None:
        return False
    try:
        link = build_magic_link(user_id, email, settings, callback_path)
        return bool(mailer.send_magic_link(email, link))
    except Exception:
        logger.warning("signin: failed to send magic link to user %s", user_id, exc_info=True)
        return False


class SignInLinks:
    def __init__(self, db: Session, settings: Settings, mailer: Mailer | None = None):
        self.db = db
        self.settings = settings
        self.mailer = mailer

    def find_member(self, email: str) -> User | None:
        user = self.db.execute(
            select(User).where(User.email == email.strip().lower())
        ).scalar_one_or_none()
        if user is None or not user.is_active:
            return None
        return user

    def request(
        self,
        email: str,
        callback_path: str | None = None,
        defer: Callable[..., None] | None = None,
    ) -> None:
        user = self.find_member(email)
        if user is None:
            logger.info("signin: link requested for unknown or inactive address")
            return

        if defer is not None:
            defer(send_sign_in_link, self.settings, self.mailer, user.id, user.email, callback_path)
        else:
            send_sign_in_link(self.settings, self.mailer, user.id, user.email, callback_path)
