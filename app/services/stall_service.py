"""
Stall confirmations and collections recorded during a session.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound, PreconditionFailed
from app.models.actor import Actor
from app.models.field_session import SessionStatus, TaskType
from app.models.stall import Collection, CollectionMode, StallConfirmation
from app.services import attendance_service, task_status_service
from app.services.notification_service import publish
from app.services.session_service import ensure_session_editable, get_session_for_actor
from app.utils.datetime_utils import now_utc

_log = logging.getLogger(__name__)


def _require_not_locked(session) -> None:
    if session.status == SessionStatus.LOCKED:
        raise Conflict("Session is locked")


def create_stall_confirmation(
    db: Session,
    actor: Actor,
    session_id: int,
    farmer_name: str,
    stall_name: str,
    stall_no: str,
    now: Optional[datetime] = None,
) -> StallConfirmation:
    """Confirm a stall and submit the stall_confirm task."""
    now = now or now_utc()
    session = get_session_for_actor(db, session_id, actor)
    _require_not_locked(session)

    stall = StallConfirmation(
        session_id=session.id,
        actor_id=actor.id,
        market_id=session.market_id,
        market_date=session.operational_date,
        farmer_name=farmer_name,
        stall_name=stall_name,
        stall_no=stall_no,
        created_at=now,
        updated_at=now,
    )
    db.add(stall)
    db.flush()

    task_status_service.record_event(
        db,
        session,
        TaskType.STALL_CONFIRM,
        {"stall_id": stall.id, "stall_no": stall_no, "farmer_name": farmer_name},
        now=now,
        commit=False,
    )
    db.commit()
    db.refresh(stall)

    publish("stall_confirmations", stall.id, "created", session_id=session.id)
    attendance_service.recompute_for_session(db, session)
    return stall


def _get_own_stall(db: Session, stall_id: int, actor: Actor) -> StallConfirmation:
    stall = db.query(StallConfirmation).filter(StallConfirmation.id == stall_id).first()
    if not stall or stall.actor_id != actor.id:
        raise NotFound(f"Stall confirmation with id {stall_id} not found")
    return stall


def update_stall_confirmation(
    db: Session,
    actor: Actor,
    stall_id: int,
    farmer_name: Optional[str] = None,
    stall_name: Optional[str] = None,
    stall_no: Optional[str] = None,
) -> StallConfirmation:
    """Edit a stall while its session is still open to changes."""
    stall = _get_own_stall(db, stall_id, actor)
    ensure_session_editable(stall.session)

    if farmer_name is not None:
        stall.farmer_name = farmer_name
    if stall_name is not None:
        stall.stall_name = stall_name
    if stall_no is not None:
        stall.stall_no = stall_no
    stall.updated_at = now_utc()
    db.commit()
    db.refresh(stall)

    publish("stall_confirmations", stall.id, "updated", session_id=stall.session_id)
    return stall


def delete_stall_confirmation(
    db: Session,
    actor: Actor,
    stall_id: int,
    now: Optional[datetime] = None,
) -> None:
    """
    Remove a stall before the session is finalized. The removal is appended to the
    stall_confirm event log as a submit whose payload carries deleted=True, so the task
    stays submitted even when the last stall goes; task state only moves forward.
    """
    now = now or now_utc()
    stall = _get_own_stall(db, stall_id, actor)
    session = stall.session
    ensure_session_editable(session)
    stall_no = stall.stall_no

    db.delete(stall)
    task_status_service.record_event(
        db,
        session,
        TaskType.STALL_CONFIRM,
        {"stall_id": stall_id, "stall_no": stall_no, "deleted": True},
        is_late=False,
        now=now,
        commit=False,
    )
    db.commit()
    _log.info("Stall confirmation %s deleted by actor %s", stall_id, actor.id)
    publish("stall_confirmations", stall_id, "deleted", session_id=session.id)
    attendance_service.recompute_for_session(db, session)


def list_stall_confirmations(db: Session, session_id: int) -> List[StallConfirmation]:
    return (
        db.query(StallConfirmation)
        .filter(StallConfirmation.session_id == session_id)
        .order_by(StallConfirmation.id)
        .all()
    )


def record_collection(
    db: Session,
    actor: Actor,
    session_id: int,
    amount,
    mode: CollectionMode,
    now: Optional[datetime] = None,
) -> Collection:
    """Record money collected at the market and submit the collection task."""
    now = now or now_utc()
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        raise PreconditionFailed("amount must be a number")
    if amount <= 0:
        raise PreconditionFailed("amount must be greater than zero")
    try:
        mode = CollectionMode(mode)
    except ValueError:
        raise PreconditionFailed(f"mode must be one of {[m.value for m in CollectionMode]}")

    session = get_session_for_actor(db, session_id, actor)
    _require_not_locked(session)

    collection = Collection(
        session_id=session.id,
        market_id=session.market_id,
        market_date=session.operational_date,
        amount=amount,
        mode=mode,
        collected_by=actor.id,
        created_at=now,
    )
    db.add(collection)
    db.flush()

    task_status_service.record_event(
        db,
        session,
        TaskType.COLLECTION,
        {"collection_id": collection.id, "amount": amount, "mode": mode},
        now=now,
        commit=False,
    )
    db.commit()
    db.refresh(collection)

    publish("collections", collection.id, "created", session_id=session.id)
    attendance_service.recompute_for_session(db, session)
    return collection
