from typing import Annotated, Any

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from eiga.core.config import Settings
from eiga.core.database import get_db
from eiga.core.errors import CoreError, ErrorKind
from eiga.realtime.fanout import Notifier
from eiga.services.discussions import DiscussionTree
from eiga.services.invites import InviteLedger
from eiga.services.reactions import ReactionLedger
from eiga.services.signin import SignInLinks


class InvalidPayload(CoreError):
    """Body failed schema validation; carries the field issues for JSON callers."""

    def __init__(self, issues: list[dict[str, Any]]):
        super().__init__(ErrorKind.INVALID, "invalid payload")
        self.issues = issues


async def read_payload(request: Request) -> dict[str, Any]:
    """Read the body once, as JSON or as form fields, into a plain dict."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    try:
        form = await request.form()
    except (AssertionError, ValueError):
        return {}
    return {k: v for k, v in form.items() if isinstance(v, str)}


def parse_payload(model: type[BaseModel], raw: dict[str, Any]) -> BaseModel:
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        issues = [
            {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
            for err in e.errors(include_url=False, include_context=False, include_input=False)
        ]
        raise InvalidPayload(issues) from None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_invite_ledger(request: Request, db: Session = Depends(get_db)) -> InviteLedger:
    return InviteLedger(db, request.app.state.settings, request.app.state.mailer)


def get_sign_in_links(request: Request, db: Session = Depends(get_db)) -> SignInLinks:
    return SignInLinks(db, request.app.state.settings, request.app.state.mailer)


def get_discussion_tree(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> DiscussionTree:
    return DiscussionTree(db, notifier)


def get_reaction_ledger(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> ReactionLedger:
    return ReactionLedger(db, notifier)


Payload = Annotated[dict[str, Any], Depends(read_payload)]
InviteLedgerDep = Annotated[InviteLedger, Depends(get_invite_ledger)]
DiscussionTreeDep = Annotated[DiscussionTree, Depends(get_discussion_tree)]
ReactionLedgerDep = Annotated[ReactionLedger, Depends(get_reaction_ledger)]
SignInLinksDep = Annotated[SignInLinks, Depends(get_sign_in_links)]
