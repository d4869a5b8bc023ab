"""
Coach availability: weekly template, additions, blocks and settings.

Also the read primitives every scheduling component loads its inputs
through (`get_weekly_availability`, `get_availability_additions`,
`get_blocked_slots`) and the coach calendar view built on the slot calculus.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import get_settings
from gymbook.core.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from gymbook.core.logging import get_logger
from gymbook.core import timeutils
from gymbook.models.availability import AvailabilityAddition, BlockedSlot, WeeklyAvailability
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.room import CoachSettings, Room
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import User
from gymbook.schemas.availability import (
    AdditionCreate,
    BlockCreate,
    CoachSettingsUpdate,
    WeeklySlotIn,
)
from gymbook.services.slot_calculus import Slot, compute_calendar

logger = get_logger(__name__)
settings = get_settings()


# ---------------------------------------------------------------------------
# Read primitives
# ---------------------------------------------------------------------------

async def get_weekly_availability(
    db: AsyncSession,
    coach_id: int,
    day_of_week: Optional[int] = None,
) -> List[WeeklyAvailability]:
    query = select(WeeklyAvailability).where(WeeklyAvailability.coach_id == coach_id)
    if day_of_week is not None:
        query = query.where(WeeklyAvailability.day_of_week == day_of_week)
    result = await db.execute(
        query.order_by(WeeklyAvailability.day_of_week, WeeklyAvailability.start_time)
    )
    return list(result.scalars().all())


async def get_availability_additions(
    db: AsyncSession,
    coach_id: int,
    start: datetime,
    end: datetime,
) -> List[AvailabilityAddition]:
    """Additions starting inside [start, end]."""
    result = await db.execute(
        select(AvailabilityAddition)
        .where(
            AvailabilityAddition.coach_id == coach_id,
            AvailabilityAddition.start_time >= start,
            AvailabilityAddition.start_time <= end,
        )
        .order_by(AvailabilityAddition.start_time)
    )
    return list(result.scalars().all())


async def get_blocked_slots(
    db: AsyncSession,
    coach_id: int,
    start: datetime,
    end: datetime,
) -> List[BlockedSlot]:
    """Blocks overlapping [start, end]."""
    result = await db.execute(
        select(BlockedSlot)
        .where(
            BlockedSlot.coach_id == coach_id,
            BlockedSlot.start_time <= end,
            BlockedSlot.end_time > start,
        )
        .order_by(BlockedSlot.start_time)
    )
    return list(result.scalars().all())


async def get_coach(db: AsyncSession, coach_id: int) -> User:
    coach = await db.get(User, coach_id)
    if coach is None or not coach.can_coach or not coach.is_active:
        raise NotFoundError(f"Coach {coach_id} not found", code="coach_not_found")
    return coach


# ---------------------------------------------------------------------------
# Coach settings
# ---------------------------------------------------------------------------

async def get_coach_settings(db: AsyncSession, coach_id: int) -> CoachSettings:
    """Settings row for the coach, created with defaults on first read."""
    result = await db.execute(select(CoachSettings).where(CoachSettings.coach_id == coach_id))
    coach_settings = result.scalar_one_or_none()
    if coach_settings is not None:
        return coach_settings

    coach_settings = CoachSettings(
        coach_id=coach_id,
        default_duration=settings.DEFAULT_SLOT_DURATION,
    )
    db.add(coach_settings)
    try:
        await db.commit()
    except IntegrityError:
        # Created concurrently by another request
        await db.rollback()
        result = await db.execute(select(CoachSettings).where(CoachSettings.coach_id == coach_id))
        return result.scalar_one()
    return coach_settings


async def get_default_room_id(db: AsyncSession, coach_id: int) -> Optional[int]:
    result = await db.execute(
        select(CoachSettings.default_room_id).where(CoachSettings.coach_id == coach_id)
    )
    return result.scalar_one_or_none()


async def require_default_room_id(db: AsyncSession, coach_id: int) -> int:
    room_id = await get_default_room_id(db, coach_id)
    if room_id is None:
        raise ConfigurationError(
            "Coach has no default room configured",
            code="no_default_room",
            details={"coach_id": coach_id},
        )
    return room_id


async def _ensure_room(db: AsyncSession, room_id: int) -> Room:
    room = await db.get(Room, room_id)
    if room is None or not room.is_active:
        raise NotFoundError(f"Room {room_id} not found", code="room_not_found")
    return room


async def update_coach_settings(
    db: AsyncSession,
    coach_id: int,
    data: CoachSettingsUpdate,
) -> CoachSettings:
    coach_settings = await get_coach_settings(db, coach_id)
    if data.default_room_id is not None:
        await _ensure_room(db, data.default_room_id)
        coach_settings.default_room_id = data.default_room_id
    if data.default_duration is not None:
        coach_settings.default_duration = data.default_duration
    await db.commit()

    logger.info(
        "coach_settings_updated",
        coach_id=coach_id,
        default_room_id=coach_settings.default_room_id,
        default_duration=coach_settings.default_duration,
    )
    return coach_settings


# ---------------------------------------------------------------------------
# Weekly template
# ---------------------------------------------------------------------------

async def replace_day_availability(
    db: AsyncSession,
    coach_id: int,
    day_of_week: int,
    slots: List[WeeklySlotIn],
) -> List[WeeklyAvailability]:
    """Replace every template row of one weekday with `slots`."""
    if not 0 <= day_of_week <= 6:
        raise ValidationError(f"Invalid day of week {day_of_week}", code="invalid_day_of_week")

    windows = []
    for slot in slots:
        start = timeutils.parse_hhmm(slot.start_time)
        end = timeutils.parse_hhmm(slot.end_time)
        if end <= start:
            raise ValidationError(
                f"End time {slot.end_time} must be after start time {slot.start_time}",
                code="invalid_range",
            )
        if slot.room_id is not None:
            await _ensure_room(db, slot.room_id)
        windows.append((start, end, slot))

    windows.sort(key=lambda w: w[0])
    for (_, prev_end, prev), (start, _, slot) in zip(windows, windows[1:]):
        if start < prev_end:
            raise ValidationError(
                f"Availability {slot.start_time}-{slot.end_time} overlaps "
                f"{prev.start_time}-{prev.end_time}",
                code="overlapping_availability",
            )

    await db.execute(
        delete(WeeklyAvailability).where(
            WeeklyAvailability.coach_id == coach_id,
            WeeklyAvailability.day_of_week == day_of_week,
        )
    )
    rows = [
        WeeklyAvailability(
            coach_id=coach_id,
            day_of_week=day_of_week,
            start_time=timeutils.format_hhmm(start),
            end_time=timeutils.format_hhmm(end),
            duration=slot.duration,
            is_individual=slot.is_individual,
            is_group=slot.is_group,
            room_id=slot.room_id,
        )
        for start, end, slot in windows
    ]
    db.add_all(rows)
    await db.commit()

    logger.info(
        "weekly_availability_replaced",
        coach_id=coach_id,
        day_of_week=day_of_week,
        rows=len(rows),
    )
    return rows


# ---------------------------------------------------------------------------
# Additions
# ---------------------------------------------------------------------------

def _validate_range(start: datetime, end: datetime, now: datetime) -> None:
    if end <= start:
        raise ValidationError("End time must be after start time", code="invalid_range")
    if start < now:
        raise ValidationError("Cannot create a slot in the past", code="in_the_past")


async def create_addition(
    db: AsyncSession,
    coach_id: int,
    data: AdditionCreate,
    now: Optional[datetime] = None,
) -> AvailabilityAddition:
    """
    Open an exceptional slot. With `member_id`, the member is booked into it
    in the same transaction (session + confirmed booking).
    """
    now = now or timeutils.now()
    _validate_range(data.start_time, data.end_time, now)
    if data.room_id is not None:
        await _ensure_room(db, data.room_id)

    member = None
    if data.member_id is not None:
        member = await db.get(User, data.member_id)
        if member is None or not member.is_active:
            raise NotFoundError(f"Member {data.member_id} not found", code="member_not_found")
        room_id = data.room_id or await require_default_room_id(db, coach_id)

    addition = AvailabilityAddition(
        coach_id=coach_id,
        start_time=data.start_time,
        end_time=data.end_time,
        is_individual=data.is_individual,
        is_group=data.is_group,
        room_id=data.room_id,
        reason=data.reason,
    )
    db.add(addition)

    if member is not None:
        session = TrainingSession(
            coach_id=coach_id,
            room_id=room_id,
            member_id=member.id,
            title=data.reason,
            type=SessionType.ONE_TO_ONE,
            capacity=1,
            booked_count=1,
            start_time=data.start_time,
            end_time=data.end_time,
            status=SessionStatus.SCHEDULED,
        )
        db.add(session)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                "A session already exists at this time",
                code="session_exists",
            )
        db.add(Booking(session_id=session.id, member_id=member.id, status=BookingStatus.CONFIRMED))

    await db.commit()
    logger.info(
        "availability_addition_created",
        addition_id=addition.id,
        coach_id=coach_id,
        start_time=addition.start_time,
        booked_member_id=data.member_id,
    )
    return addition


async def delete_addition(db: AsyncSession, coach_id: int, addition_id: int) -> None:
    addition = await db.get(AvailabilityAddition, addition_id)
    if addition is None or addition.coach_id != coach_id:
        raise NotFoundError(f"Addition {addition_id} not found", code="addition_not_found")
    await db.delete(addition)
    await db.commit()
    logger.info("availability_addition_deleted", addition_id=addition_id, coach_id=coach_id)


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

async def create_block(
    db: AsyncSession,
    coach_id: int,
    data: BlockCreate,
) -> BlockedSlot:
    if data.end_time <= data.start_time:
        raise ValidationError("End time must be after start time", code="invalid_range")
    block = BlockedSlot(
        coach_id=coach_id,
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason,
    )
    db.add(block)
    await db.commit()
    logger.info(
        "slot_blocked",
        block_id=block.id,
        coach_id=coach_id,
        start_time=block.start_time,
        end_time=block.end_time,
    )
    return block


async def delete_block(db: AsyncSession, coach_id: int, block_id: int) -> None:
    block = await db.get(BlockedSlot, block_id)
    if block is None or block.coach_id != coach_id:
        raise NotFoundError(f"Block {block_id} not found", code="block_not_found")
    await db.delete(block)
    await db.commit()
    logger.info("slot_unblocked", block_id=block_id, coach_id=coach_id)


# ---------------------------------------------------------------------------
# Calendar view
# ---------------------------------------------------------------------------

async def get_calendar(
    db: AsyncSession,
    coach_id: int,
    start_date: date,
    end_date: date,
) -> dict:
    """Slots for every day in [start_date, end_date] as the coach sees them."""
    if end_date < start_date:
        raise ValidationError("End date must not be before start date", code="invalid_range")

    range_start = timeutils.start_of_day(start_date)
    range_end = timeutils.start_of_day(end_date) + timedelta(days=1)

    coach_settings = await get_coach_settings(db, coach_id)
    templates = await get_weekly_availability(db, coach_id)
    additions = await get_availability_additions(db, coach_id, range_start, range_end)
    blocks = await get_blocked_slots(db, coach_id, range_start, range_end)
    result = await db.execute(
        select(TrainingSession).where(
            TrainingSession.coach_id == coach_id,
            TrainingSession.start_time < range_end,
            TrainingSession.end_time > range_start,
            TrainingSession.status != SessionStatus.CANCELLED,
        )
    )
    sessions = list(result.scalars().all())

    return compute_calendar(
        start_date,
        end_date,
        templates,
        additions=additions,
        blocks=blocks,
        sessions=sessions,
        default_duration=coach_settings.default_duration,
        bucket_minutes=settings.SLOT_BUCKET_MINUTES,
    )


async def get_day_slots(db: AsyncSession, coach_id: int, day: date) -> List[Slot]:
    calendar = await get_calendar(db, coach_id, day, day)
    return calendar[day]
