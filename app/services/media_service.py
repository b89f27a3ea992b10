"""
Media capture records. The file itself is already in object storage; this stores the
reference, the capture window snapshot and the frozen lateness flag, and advances the
matching task.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import Conflict, PreconditionFailed
from app.models.actor import Actor
from app.models.field_session import SessionStatus, TaskType
from app.models.media import Media, MediaType
from app.services import attendance_service, task_status_service
from app.services.notification_service import publish
from app.services.session_service import get_session_for_actor
from app.services.time_window_service import get_window, is_late
from app.utils.datetime_utils import now_utc

_log = logging.getLogger(__name__)

# Media types that are not part of the required task set
UNTRACKED_MEDIA_TYPES = (MediaType.CUSTOMER_FEEDBACK,)


def capture_media(
    db: Session,
    actor: Actor,
    session_id: int,
    media_type: MediaType,
    file_url: str,
    file_name: str,
    content_type: str,
    gps_lat: Optional[float] = None,
    gps_lng: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Media:
    """
    Record a media capture. Lateness is evaluated once, here, against the window in
    force at capture time and stored with that window; later window changes do not
    touch this row.
    """
    media_type = MediaType(media_type)
    now = now or now_utc()
    session = get_session_for_actor(db, session_id, actor)

    if session.status == SessionStatus.LOCKED:
        raise Conflict("Session is locked")
    if media_type == MediaType.SELFIE_GPS and (gps_lat is None or gps_lng is None):
        raise PreconditionFailed("GPS location is required for selfie_gps")

    tracked = media_type not in UNTRACKED_MEDIA_TYPES
    window = get_window(db, TaskType(media_type.value)) if tracked else None
    late = is_late(now, window)

    media = Media(
        actor_id=actor.id,
        session_id=session.id,
        market_id=session.market_id,
        market_date=session.operational_date,
        media_type=media_type,
        file_url=file_url,
        file_name=file_name,
        content_type=content_type,
        gps_lat=gps_lat,
        gps_lng=gps_lng,
        captured_at=now,
        allowed_start=window.start if window else None,
        allowed_end=window.end if window else None,
        is_late=late,
        created_at=now,
    )

    if tracked:
        status_row = task_status_service.record_event(
            db,
            session,
            TaskType(media_type.value),
            {"file_url": file_url, "file_name": file_name, "content_type": content_type},
            gps_lat=gps_lat,
            gps_lng=gps_lng,
            file_url=file_url,
            is_late=late,
            now=now,
            commit=False,
        )
        media.task_event_id = status_row.latest_event_id

    db.add(media)
    db.commit()
    db.refresh(media)

    _log.debug(
        "media captured: id=%s session_id=%s type=%s late=%s",
        media.id, session.id, media_type.value, late,
    )
    publish("media", media.id, "created", session_id=session.id, media_type=media_type.value)
    if tracked:
        attendance_service.recompute_for_session(db, session)
    return media


def list_media(db: Session, session_id: int) -> List[Media]:
    return db.query(Media).filter(Media.session_id == session_id).order_by(Media.id).all()
