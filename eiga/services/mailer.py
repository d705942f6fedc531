import logging
from typing import Protocol

logger = logging.getLogger(__name__)

MAGIC_LINK_SUBJECT = "Your sign-in link for Eiga"
INVITE_SUBJECT = "You're invited to Eiga"


class Mailer(Protocol):
    def send_magic_link(self, to: str, link: str) -> bool: ...

    def send_invite(self, to: str, redeem_url: str, expires_in_days: int) -> bool: ...


class LogMailer:
    """Development mailer: writes the message to the log instead of sending it."""

    def send_magic_link(self, to: str, link: str) -> bool:
        logger.info("[email:dev] to=%s subject=%r link=%s", to, MAGIC_LINK_SUBJECT, link)
        return True

    def send_invite(self, to: str, redeem_url: str, expires_in_days: int) -> bool:
        logger.info(
            "[email:dev] to=%s subject=%r redeem=%s expires_in=%dd",
            to,
            INVITE_SUBJECT,
            redeem_url,
            expires_in_days,
        )
        return True
