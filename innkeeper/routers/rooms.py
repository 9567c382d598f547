"""
Room inventory routes
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from innkeeper.database import get_db
from innkeeper.models.ontology import Employee
from innkeeper.models.schemas import RoomCreate, RoomPriceUpdate, RoomResponse
from innkeeper.security.auth import get_current_user, require_admin
from innkeeper.services.room_service import RoomService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return RoomService(db).list_rooms()


@router.get("/available", response_model=List[RoomResponse])
def list_available_rooms(
    room_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return RoomService(db).list_available_rooms(room_type)


@router.post("", response_model=RoomResponse, status_code=201)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    return RoomService(db).create_room(data)


@router.patch("/{room_id}/prices", response_model=RoomResponse)
def update_room_prices(
    room_id: int,
    data: RoomPriceUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_admin)
):
    """Edit prices of a room that is not occupied"""
    return RoomService(db).update_prices(room_id, data)


@router.patch("/{room_id}/mark-clean", response_model=RoomResponse)
def mark_room_clean(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Housekeeping done: cleaning -> available"""
    return RoomService(db).mark_clean(room_id, current_user.id)
