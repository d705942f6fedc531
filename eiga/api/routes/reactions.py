from fastapi import APIRouter, Depends

from eiga.api.deps import Payload, ReactionLedgerDep, parse_payload
from eiga.api.responses import json_ok
from eiga.core.auth import Identity, get_current_user
from eiga.schemas.discussion import ReactionAddRequest, ReactionRemoveRequest

router = APIRouter(prefix="/api/reactions", tags=["reactions"])


@router.post("")
def set_reaction(
    raw: Payload,
    ledger: ReactionLedgerDep,
    user: Identity = Depends(get_current_user),
):
    req = parse_payload(ReactionAddRequest, raw)
    result = ledger.set_reaction(user.id, req.comment_id, req.type)
    return json_ok(created=result.created, changed=result.changed)


@router.delete("")
def remove_reaction(
    raw: Payload,
    ledger: ReactionLedgerDep,
    user: Identity = Depends(get_current_user),
):
    req = parse_payload(ReactionRemoveRequest, raw)
    result = ledger.remove_reaction(user.id, req.comment_id)
    return json_ok(removed=result.removed)
