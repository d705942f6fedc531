from fastapi import APIRouter, Depends, Request

from eiga.api.deps import DiscussionTreeDep, InviteLedgerDep, Payload, parse_payload
from eiga.api.responses import json_ok, redirect, wants_json
from eiga.core.auth import Identity, require_admin
from eiga.schemas.discussion import HighlightRequest
from eiga.schemas.invite import (
    InviteCodeRequest,
    InviteCreateRequest,
    InviteExtendRequest,
    InvitePublic,
    InviteSendRequest,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _done(request: Request, flag: str, **body):
    if wants_json(request):
        return json_ok(**body)
    return redirect("/invites", **{flag: 1})


@router.get("/invites", response_model=list[InvitePublic])
def list_invites(ledger: InviteLedgerDep, _: Identity = Depends(require_admin)):
    return ledger.list_codes()


@router.post("/invites/create")
def create_invites(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    admin: Identity = Depends(require_admin),
):
    req = parse_payload(InviteCreateRequest, raw)
    invites = ledger.issue_codes(admin.id, req.quantity, req.expires_in_days)
    return _done(request, "created", codes=[i.code for i in invites])


@router.post("/invites/send")
def send_invite(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    admin: Identity = Depends(require_admin),
):
    req = parse_payload(InviteSendRequest, raw)
    invite = ledger.send_invite(admin.id, req.to_email, req.expires_in_days)
    return _done(request, "sent", code=invite.code)


@router.post("/invites/revoke")
def revoke_invite(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    _: Identity = Depends(require_admin),
):
    req = parse_payload(InviteCodeRequest, raw)
    ledger.revoke(req.code)
    return _done(request, "revoked")


@router.post("/invites/extend")
def extend_invite(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    _: Identity = Depends(require_admin),
):
    req = parse_payload(InviteExtendRequest, raw)
    invite = ledger.extend(req.code, req.extend_days)
    return _done(request, "extended", expires_at=invite.expires_at.isoformat())


@router.post("/invites/delete")
def delete_invite(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    _: Identity = Depends(require_admin),
):
    req = parse_payload(InviteCodeRequest, raw)
    ledger.delete(req.code)
    return _done(request, "deleted")


@router.post("/flags/highlight")
def highlight_comment(
    raw: Payload,
    tree: DiscussionTreeDep,
    admin: Identity = Depends(require_admin),
):
    req = parse_payload(HighlightRequest, raw)
    comment = tree.set_highlight(req.item_id, admin, req.highlight)
    return json_ok(highlighted=comment.is_highlighted)
