"""
Room inventory service
Room lifecycle (available -> occupied -> cleaning -> available) and price lookup.
occupy/release never commit; they run inside the ledger's atomic unit.
"""
from typing import Callable, List, Optional
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from innkeeper.core.locks import resource_locks
from innkeeper.core.money import to_money
from innkeeper.core.state_machine import ROOM_LIFECYCLE
from innkeeper.database import atomic
from innkeeper.errors import (
    RoomNotFound, RoomUnavailable, InvalidRoomTransition, Conflict, ValidationFailed
)
from innkeeper.models.events import EventType, RoomStatusChangedData
from innkeeper.models.ontology import Room, RoomStatus, StayKind
from innkeeper.models.schemas import RoomCreate, RoomPriceUpdate
from innkeeper.services.event_bus import event_bus, Event

logger = logging.getLogger(__name__)

HOURS_PER_SHORT_STAY_BUCKET = 3


class RoomService:
    """Room inventory"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    # ---------- reads ----------

    def get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise RoomNotFound(room_id)
        return room

    def list_rooms(self) -> List[Room]:
        return self.db.query(Room).order_by(Room.room_number).all()

    def list_available_rooms(self, room_type: Optional[str] = None) -> List[Room]:
        query = self.db.query(Room).filter(Room.status == RoomStatus.AVAILABLE)
        if room_type:
            query = query.filter(Room.room_type == room_type)
        return query.order_by(Room.room_number).all()

    # ---------- pricing ----------

    def price_for(self, room: Room, stay_kind: StayKind, nights: int = 1,
                  hours: Optional[int] = None) -> Decimal:
        """
        Base price for a stay:
        - daily:   daily_price * nights
        - 3_hours: short_stay_3h_price
        - 6_hours: short_stay_6h_price
        - hourly:  short_stay_3h_price / 3 * hours
        """
        if stay_kind == StayKind.DAILY:
            if nights < 1:
                raise ValidationFailed("Number of nights must be at least 1", nights=nights)
            return to_money(to_money(room.daily_price) * nights)
        if stay_kind == StayKind.HOURS_3:
            return to_money(room.short_stay_3h_price)
        if stay_kind == StayKind.HOURS_6:
            return to_money(room.short_stay_6h_price)
        if stay_kind == StayKind.HOURLY:
            if not hours or hours < 1:
                raise ValidationFailed("Hourly stays need number_of_hours >= 1", hours=hours)
            per_hour = to_money(room.short_stay_3h_price) / HOURS_PER_SHORT_STAY_BUCKET
            return to_money(per_hour * hours)
        raise ValidationFailed(f"Unknown stay kind: {stay_kind}", stay_kind=str(stay_kind))

    # ---------- lifecycle (inside caller's transaction) ----------

    def occupy(self, room_id: int) -> Room:
        """
        available -> occupied as a conditional update, so only one of two
        concurrent check-ins can observe 'available' and win.
        """
        room = self.get_room(room_id)
        if not ROOM_LIFECYCLE.can_fire(room.status, "check_in"):
            raise RoomUnavailable(room_id, room.status.value)
        updated = self.db.query(Room).filter(
            Room.id == room_id,
            Room.status == room.status
        ).update({Room.status: RoomStatus(ROOM_LIFECYCLE.fire(room.status, "check_in"))},
                 synchronize_session=False)
        if updated != 1:
            self.db.refresh(room)
            raise RoomUnavailable(room_id, room.status.value if room.status else None)
        self.db.refresh(room)
        return room

    def release_for_cleaning(self, room: Room) -> Room:
        """occupied -> cleaning at checkout"""
        room.status = RoomStatus(self._fire(room, "checkout"))
        return room

    # ---------- housekeeping / admin ----------

    def mark_clean(self, room_id: int, operator_id: Optional[int] = None) -> Room:
        """cleaning -> available"""
        with resource_locks.hold(("room", room_id)):
            with atomic(self.db):
                room = self.get_room(room_id)
                old_status = room.status.value
                room.status = RoomStatus(self._fire(room, "mark_clean"))
            self.db.refresh(room)

        logger.info(f"Room {room.room_number} marked clean by employee {operator_id}")
        self._publish_event(Event(
            event_type=EventType.ROOM_STATUS_CHANGED,
            timestamp=datetime.now(),
            data=RoomStatusChangedData(
                room_id=room.id,
                room_number=room.room_number,
                old_status=old_status,
                new_status=room.status.value,
                reason="housekeeping"
            ).to_dict(),
            source="room_service"
        ))
        return room

    def create_room(self, data: RoomCreate) -> Room:
        with atomic(self.db):
            if self.db.query(Room).filter(Room.room_number == data.room_number).first():
                raise Conflict(f"Room number {data.room_number} already exists",
                               room_number=data.room_number)
            room = Room(
                room_number=data.room_number,
                room_type=data.room_type,
                floor=data.floor,
                max_occupancy=data.max_occupancy,
                daily_price=to_money(data.daily_price),
                short_stay_3h_price=to_money(data.short_stay_3h_price),
                short_stay_6h_price=to_money(data.short_stay_6h_price),
                status=RoomStatus.AVAILABLE,
            )
            self.db.add(room)
        self.db.refresh(room)
        return room

    def update_prices(self, room_id: int, data: RoomPriceUpdate) -> Room:
        """Price edits are rejected while a guest occupies the room"""
        with resource_locks.hold(("room", room_id)):
            with atomic(self.db):
                room = self.get_room(room_id)
                if room.status == RoomStatus.OCCUPIED:
                    raise Conflict(f"Room {room.room_number} is occupied; prices are locked",
                                   room_id=room_id)
                for field_name, value in data.model_dump(exclude_unset=True).items():
                    if value is not None:
                        setattr(room, field_name, to_money(value))
            self.db.refresh(room)
        return room

    def _fire(self, room: Room, trigger: str) -> str:
        try:
            return ROOM_LIFECYCLE.fire(room.status, trigger)
        except ValueError as e:
            raise InvalidRoomTransition(str(e), room_id=room.id, room_status=room.status.value)
