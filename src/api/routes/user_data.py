"""Tags, notes and links a signed-in user keeps on an adviser profile."""

from fastapi import APIRouter, Depends, Query, Response
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.auth import AuthUser, get_current_user
from src.api.errors import BAD_REQUEST, CONFLICT, FORBIDDEN, INTERNAL_ERROR, NOT_FOUND, ApiError, internal_error
from src.api.schemas import LinkCreate, LinkUpdate, NoteCreate, NoteUpdate, TagCreate
from src.config.logging_config import setup_logger
from src.services.user_data import links, notes, tags
from src.services.user_data.common import UserDataError

logger = setup_logger(__name__)

router = APIRouter(prefix="/api/ria-hunter/profile", tags=["user-data"])

_CODES = {400: BAD_REQUEST, 403: FORBIDDEN, 404: NOT_FOUND, 409: CONFLICT}


async def _run(action: str, coro):
    """Await a user data call, mapping its failures to API errors."""
    try:
        return await coro
    except UserDataError as e:
        raise ApiError(e.status_code, e.message, _CODES.get(e.status_code, INTERNAL_ERROR), extra=e.extra) from e
    except PostgrestAPIError as e:
        logger.error("Failed to %s: %s", action, e)
        raise internal_error(f"Failed to {action}", e.message) from e


def _no_content() -> Response:
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
@router.get("/tags")
async def list_tags(ria_id: str = Query(min_length=1), user: AuthUser = Depends(get_current_user)):
    return await _run("fetch tags", tags.list_tags(user.id, ria_id))


@router.post("/tags", status_code=201)
async def create_tag(body: TagCreate, user: AuthUser = Depends(get_current_user)):
    return await _run("create tag", tags.create_tag(user.id, body.ria_id, body.tag_text))


@router.delete("/tags/{tag_id}", status_code=204)
async def delete_tag(tag_id: str, user: AuthUser = Depends(get_current_user)):
    await _run("delete tag", tags.delete_tag(user.id, tag_id))
    return _no_content()


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------
@router.get("/notes")
async def list_notes(ria_id: str = Query(min_length=1), user: AuthUser = Depends(get_current_user)):
    return await _run("fetch notes", notes.list_notes(user.id, ria_id))


@router.post("/notes", status_code=201)
async def create_note(body: NoteCreate, user: AuthUser = Depends(get_current_user)):
    return await _run("create note", notes.create_note(user.id, body.ria_id, body.note_content))


@router.put("/notes/{note_id}")
async def update_note(note_id: str, body: NoteUpdate, user: AuthUser = Depends(get_current_user)):
    return await _run("update note", notes.update_note(user.id, note_id, body.note_content))


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(note_id: str, user: AuthUser = Depends(get_current_user)):
    await _run("delete note", notes.delete_note(user.id, note_id))
    return _no_content()


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
@router.get("/links")
async def list_links(ria_id: str = Query(min_length=1), user: AuthUser = Depends(get_current_user)):
    return await _run("fetch links", links.list_links(user.id, ria_id))


@router.post("/links", status_code=201)
async def create_link(body: LinkCreate, user: AuthUser = Depends(get_current_user)):
    return await _run(
        "create link", links.create_link(user.id, body.ria_id, body.link_url, body.link_description)
    )


@router.put("/links/{link_id}")
async def update_link(link_id: str, body: LinkUpdate, user: AuthUser = Depends(get_current_user)):
    description = body.link_description if "link_description" in body.model_fields_set else links.UNSET
    return await _run("update link", links.update_link(user.id, link_id, body.link_url, description))


@router.delete("/links/{link_id}", status_code=204)
async def delete_link(link_id: str, user: AuthUser = Depends(get_current_user)):
    await _run("delete link", links.delete_link(user.id, link_id))
    return _no_content()
