from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from eiga.api.deps import (
    InvalidPayload,
    InviteLedgerDep,
    Payload,
    SignInLinksDep,
    get_settings,
    parse_payload,
)
from eiga.api.responses import json_error, json_ok, redirect, wants_json
from eiga.core.auth import Identity, get_current_user
from eiga.core.config import Settings
from eiga.core.database import get_db
from eiga.core.errors import ErrorKind
from eiga.core.security import create_access_token, decode_token, normalize_callback_path
from eiga.models.user import User
from eiga.schemas.invite import RedeemInviteRequest
from eiga.schemas.user import MagicLinkRequest, UserPublic
from eiga.services.invites import RedeemErr

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _invite_page(code: str | None) -> str:
    return f"/invite/{quote(code, safe='')}" if code else "/invite"


@router.post("/redeem-invite")
def redeem_invite(
    request: Request,
    raw: Payload,
    ledger: InviteLedgerDep,
    background_tasks: BackgroundTasks,
):
    try:
        req = parse_payload(RedeemInviteRequest, raw)
    except InvalidPayload as e:
        if wants_json(request):
            return json_error(ErrorKind.INVALID, issues=e.issues)
        raw_code = raw.get("code") if isinstance(raw.get("code"), str) else None
        return redirect(_invite_page(raw_code), status=ErrorKind.INVALID.value)

    result = ledger.redeem(req.code, req.email, req.username, defer=background_tasks.add_task)

    if isinstance(result, RedeemErr):
        if wants_json(request):
            return json_error(result.kind)
        return redirect(_invite_page(req.code), status=result.kind.value)

    if wants_json(request):
        return json_ok(user=UserPublic.model_validate(result.user).model_dump())
    return redirect("/login", sent=1)


@router.post("/magic-link")
def request_magic_link(
    request: Request,
    raw: Payload,
    links: SignInLinksDep,
    background_tasks: BackgroundTasks,
):
    try:
        req = parse_payload(MagicLinkRequest, raw)
    except InvalidPayload as e:
        if wants_json(request):
            return json_error(ErrorKind.INVALID, issues=e.issues)
        return redirect("/login", error=ErrorKind.INVALID.value)

    # same answer whether or not the address belongs to a member
    links.request(req.email, req.callbackUrl, defer=background_tasks.add_task)

    if wants_json(request):
        return json_ok(sent=True)
    return redirect("/login", sent=1)


@router.get("/invites/{code}")
def invite_status(code: str, ledger: InviteLedgerDep):
    return {"ok": True, "code": code.strip().upper(), "status": ledger.get_status(code)}


@router.get("/callback")
def magic_link_callback(
    token: str,
    callbackUrl: str | None = None,
    db: Session = Depends(get_db),
    cfg: Settings = Depends(get_settings),
):
    """Exchange a sign-in link for a session cookie."""
    payload = decode_token(token, cfg)
    if payload is None or payload.get("purpose") != "magic":
        return redirect("/login", error=ErrorKind.INVALID.value)

    try:
        user = db.get(User, int(payload["sub"]))
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        return redirect("/login", error=ErrorKind.INVALID.value)

    response = redirect(normalize_callback_path(callbackUrl, cfg))
    response.set_cookie(
        "access_token",
        create_access_token(str(user.id), cfg),
        max_age=cfg.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=not cfg.DEV,
    )
    return response


@router.get("/me", response_model=UserPublic)
def me(identity: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.get(User, identity.id)
