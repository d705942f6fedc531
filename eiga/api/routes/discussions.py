from fastapi import APIRouter, Depends, Request

from eiga.api.deps import DiscussionTreeDep, Payload, parse_payload
from eiga.api.responses import error_response, json_ok, redirect, wants_json
from eiga.core.auth import Identity, get_current_user
from eiga.core.errors import CoreError
from eiga.schemas.discussion import (
    CommentPublic,
    DiscussionCreateRequest,
    DiscussionDeleteRequest,
    DiscussionEditRequest,
)
from eiga.services.discussions import CommentNode, CommentPatch

router = APIRouter(tags=["discussions"])


def _to_public(node: CommentNode) -> CommentPublic:
    c = node.comment
    return CommentPublic(
        id=c.id,
        film_id=c.film_id,
        parent_id=c.parent_id,
        author_id=c.author_id,
        author_username=node.author_username,
        content=c.content,
        has_spoilers=c.has_spoilers,
        timestamp_reference=c.timestamp_reference,
        is_highlighted=c.is_highlighted,
        created_at=c.created_at,
        edited_at=c.edited_at,
        reactions=node.reactions,
        my_reaction=node.my_reaction,
        replies=[_to_public(r) for r in node.replies],
    )


@router.get("/api/films/{film_id}/discussions", response_model=list[CommentPublic])
def list_discussions(
    film_id: int,
    tree: DiscussionTreeDep,
    user: Identity = Depends(get_current_user),
):
    return [_to_public(n) for n in tree.list_threads(film_id, viewer_id=user.id)]


@router.post("/api/discussions")
def create_discussion(
    request: Request,
    raw: Payload,
    tree: DiscussionTreeDep,
    user: Identity = Depends(get_current_user),
):
    req = parse_payload(DiscussionCreateRequest, raw)
    film_page = f"/films/{req.film_id}"

    try:
        new_id = tree.create(
            film_id=req.film_id,
            author_id=user.id,
            content=req.content,
            parent_id=req.parent_id,
            has_spoilers=req.has_spoilers,
            timestamp_reference=req.timestamp_reference,
        )
    except CoreError as e:
        return error_response(request, e, fallback_path=film_page)

    if wants_json(request):
        return json_ok(id=new_id)
    return redirect(film_page)


@router.patch("/api/discussions")
def edit_discussion(
    raw: Payload,
    tree: DiscussionTreeDep,
    user: Identity = Depends(get_current_user),
):
    req = parse_payload(DiscussionEditRequest, raw)
    patch = CommentPatch(
        content=req.content,
        has_spoilers=req.has_spoilers,
        timestamp_reference=req.timestamp_reference,
    )
    tree.edit(req.id, user, patch)
    return json_ok()


@router.delete("/api/discussions")
def delete_discussion(
    raw: Payload,
    tree: DiscussionTreeDep,
    user: Identity = Depends(get_current_user),
):
    req = parse_payload(DiscussionDeleteRequest, raw)
    tree.delete(req.id, user)
    return json_ok()
