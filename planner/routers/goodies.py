from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from planner.auth import get_user_id
from planner.database import get_db
from planner.errors import NotFound
from planner.schemas import CollectRequest, GoodieCreate, GoodieUpdate, VoteRequest
from planner.services import goodies as goodie_service

router = APIRouter(prefix="/goodies", tags=["goodies"])

IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def _image_media_type(data: bytes) -> str:
    for signature, media_type in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


@router.get("")
def list_goodies(
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """All goodies, most relevant to the caller first."""
    return goodie_service.list_goodies(db, user_id)


@router.get("/{goodie_id}")
def get_goodie(
    goodie_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    goodie = goodie_service.get_goodie(db, goodie_id)
    if not goodie:
        raise NotFound("Goodie not found")
    return goodie_service.goodie_view(db, goodie, user_id)


@router.post("", status_code=201)
async def create_goodie(
    request: Request,
    data: GoodieCreate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    goodie = goodie_service.create_goodie(db, user_id, data, request.app.state.hub)
    return goodie_service.goodie_view(db, goodie, user_id)


@router.put("/{goodie_id}")
async def update_goodie(
    request: Request,
    goodie_id: str,
    patch: GoodieUpdate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Edit a goodie. Only its creator may do this."""
    goodie = goodie_service.update_goodie(db, user_id, goodie_id, patch, request.app.state.hub)
    return goodie_service.goodie_view(db, goodie, user_id)


@router.delete("/{goodie_id}")
async def delete_goodie(
    request: Request,
    goodie_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return goodie_service.delete_goodie(db, user_id, goodie_id, request.app.state.hub)


# ============== Votes & collections ==============

@router.post("/{goodie_id}/vote")
async def vote_goodie(
    request: Request,
    goodie_id: str,
    data: VoteRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    result = goodie_service.vote_goodie(db, user_id, goodie_id, data.value, request.app.state.hub)
    return {"ok": True, "myValue": data.value, **result}


@router.delete("/{goodie_id}/vote")
async def clear_vote(
    request: Request,
    goodie_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    result = goodie_service.clear_vote(db, user_id, goodie_id, request.app.state.hub)
    return {"ok": True, **result}


@router.put("/{goodie_id}/collected")
async def set_collected(
    request: Request,
    goodie_id: str,
    data: CollectRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    count = goodie_service.set_collected(db, user_id, goodie_id, data.collected, request.app.state.hub)
    return {"collected": data.collected, "collectedCount": count}


@router.get("/{goodie_id}/image")
def get_goodie_image(goodie_id: str, db: Session = Depends(get_db)):
    data = goodie_service.goodie_image(db, goodie_id)
    if not data:
        raise NotFound("Image not found")
    return Response(
        content=data,
        media_type=_image_media_type(data),
        headers={"Cache-Control": "public, max-age=300"},
    )
