"""
Stall confirmation and collection endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_field_actor
from app.models.actor import Actor
from app.schemas.stall import StallCreate, StallUpdate, StallOut, CollectionCreate, CollectionOut
from app.services import stall_service as svc

router = APIRouter()
collections_router = APIRouter()


@router.post("", response_model=StallOut, status_code=status.HTTP_201_CREATED)
async def create_stall(
    body: StallCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    return svc.create_stall_confirmation(
        db,
        current_user,
        body.session_id,
        farmer_name=body.farmer_name,
        stall_name=body.stall_name,
        stall_no=body.stall_no,
    )


@router.patch("/{stall_id}", response_model=StallOut)
async def update_stall(
    stall_id: int,
    body: StallUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """Edit a stall; 409 once the session is finalized or locked."""
    return svc.update_stall_confirmation(db, current_user, stall_id, **body.model_dump(exclude_unset=True))


@router.delete("/{stall_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stall(
    stall_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """Remove a stall; 409 once the session is finalized or locked."""
    svc.delete_stall_confirmation(db, current_user, stall_id)


@collections_router.post("", response_model=CollectionOut, status_code=status.HTTP_201_CREATED)
async def create_collection(
    body: CollectionCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    return svc.record_collection(db, current_user, body.session_id, body.amount, body.mode)
