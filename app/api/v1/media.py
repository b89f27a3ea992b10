"""
Media capture endpoint. Upload goes to object storage first; this records the reference.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_field_actor
from app.models.actor import Actor
from app.schemas.media import MediaCreate, MediaOut
from app.services.media_service import capture_media

router = APIRouter()


@router.post("", response_model=MediaOut, status_code=status.HTTP_201_CREATED)
async def create_media(
    body: MediaCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """
    Record a media capture. is_late is evaluated against the task window at capture
    time and never recomputed. selfie_gps requires gps_lat/gps_lng.
    """
    return capture_media(
        db,
        current_user,
        body.session_id,
        body.media_type,
        file_url=body.file_url,
        file_name=body.file_name,
        content_type=body.content_type,
        gps_lat=body.gps_lat,
        gps_lng=body.gps_lng,
    )
