"""
Available-slot projector: the bookable one-to-one slots members see.

For every coach, every day in range and every individual template row,
the row window is cut into fixed increments (the last one clipped to the
window end). An increment is offered iff:

  - it starts strictly after `now`
  - no block of that coach overlaps it
  - no live (non-cancelled) session of that coach starts at the same instant

The pure `project_available_slots` has no side effects and raises nothing;
`get_available_slots` loads its inputs and caches the result in Redis.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.logging import get_logger
from gymbook.core import timeutils
from gymbook.models.availability import BlockedSlot, WeeklyAvailability
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import Role, User
from gymbook.services import cache_service
from gymbook.services.recurrence import overlapping_block

logger = get_logger(__name__)

PROJECTION_INCREMENT_MINUTES = 60


@dataclass(frozen=True)
class AvailableSlot:
    coach_id: int
    coach_name: Optional[str]
    start_time: datetime
    end_time: datetime
    type: str = SessionType.ONE_TO_ONE
    is_available: bool = True

    def to_dict(self) -> dict:
        return {
            "coach_id": self.coach_id,
            "coach_name": self.coach_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "type": self.type,
            "is_available": self.is_available,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AvailableSlot":
        return cls(
            coach_id=data["coach_id"],
            coach_name=data.get("coach_name"),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]),
            type=data.get("type", SessionType.ONE_TO_ONE),
            is_available=data.get("is_available", True),
        )


@dataclass
class CoachAvailability:
    """Everything the projector needs to know about one coach."""

    coach_id: int
    coach_name: Optional[str]
    templates: Sequence[WeeklyAvailability] = field(default_factory=list)
    blocks: Sequence[BlockedSlot] = field(default_factory=list)


def project_available_slots(
    coaches: Iterable[CoachAvailability],
    sessions: Iterable[TrainingSession],
    start_date: date,
    end_date: date,
    now: datetime,
    increment_minutes: int = PROJECTION_INCREMENT_MINUTES,
) -> List[AvailableSlot]:
    taken: Set[Tuple[int, datetime]] = {
        (s.coach_id, s.start_time) for s in sessions if s.status != SessionStatus.CANCELLED
    }
    step = timedelta(minutes=increment_minutes)
    slots: List[AvailableSlot] = []

    for coach in coaches:
        rows_by_day: Dict[int, List[WeeklyAvailability]] = defaultdict(list)
        for row in coach.templates:
            if row.is_individual:
                rows_by_day[row.day_of_week].append(row)

        for day, weekday in timeutils.iter_days(start_date, end_date):
            for row in rows_by_day.get(weekday, ()):
                window_end = timeutils.at_minutes(day, timeutils.parse_hhmm(row.end_time))
                slot_start = timeutils.at_minutes(day, timeutils.parse_hhmm(row.start_time))
                while slot_start < window_end:
                    slot_end = min(slot_start + step, window_end)
                    if (
                        slot_start > now
                        and (coach.coach_id, slot_start) not in taken
                        and overlapping_block(coach.blocks, slot_start, slot_end) is None
                    ):
                        slots.append(
                            AvailableSlot(
                                coach_id=coach.coach_id,
                                coach_name=coach.coach_name,
                                start_time=slot_start,
                                end_time=slot_end,
                            )
                        )
                    slot_start += step

    slots.sort(key=lambda s: (s.start_time, s.coach_id))
    return slots


async def load_coach_availability(
    db: AsyncSession,
    coach_ids: Optional[Sequence[int]],
    start_date: date,
    end_date: date,
) -> List[CoachAvailability]:
    """Coaches (all active coaching users when `coach_ids` is None) with templates and blocks."""
    query = select(User).where(User.role.in_(Role.COACHING), User.is_active.is_(True))
    if coach_ids is not None:
        query = query.where(User.id.in_(coach_ids))
    coaches = list((await db.execute(query.order_by(User.id))).scalars().all())
    if not coaches:
        return []

    ids = [c.id for c in coaches]
    range_start = timeutils.start_of_day(start_date)
    range_end = timeutils.start_of_day(end_date) + timedelta(days=1)

    templates = (
        await db.execute(select(WeeklyAvailability).where(WeeklyAvailability.coach_id.in_(ids)))
    ).scalars().all()
    blocks = (
        await db.execute(
            select(BlockedSlot).where(
                BlockedSlot.coach_id.in_(ids),
                BlockedSlot.start_time < range_end,
                BlockedSlot.end_time > range_start,
            )
        )
    ).scalars().all()

    templates_by_coach: Dict[int, List[WeeklyAvailability]] = defaultdict(list)
    for row in templates:
        templates_by_coach[row.coach_id].append(row)
    blocks_by_coach: Dict[int, List[BlockedSlot]] = defaultdict(list)
    for block in blocks:
        blocks_by_coach[block.coach_id].append(block)

    return [
        CoachAvailability(
            coach_id=c.id,
            coach_name=c.name,
            templates=templates_by_coach.get(c.id, []),
            blocks=blocks_by_coach.get(c.id, []),
        )
        for c in coaches
    ]


async def get_available_slots(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    coach_ids: Optional[Sequence[int]] = None,
    now: Optional[datetime] = None,
    use_cache: bool = True,
) -> List[AvailableSlot]:
    """Projected slots for the booking view, served from Redis when possible."""
    now = now or timeutils.now()
    key = cache_service.make_slot_key(coach_ids, start_date, end_date, now)

    if use_cache:
        cached = await cache_service.get_cached_slots(key)
        if cached is not None:
            return [AvailableSlot.from_dict(item) for item in cached]

    coaches = await load_coach_availability(db, coach_ids, start_date, end_date)
    sessions: List[TrainingSession] = []
    if coaches:
        result = await db.execute(
            select(TrainingSession).where(
                TrainingSession.coach_id.in_([c.coach_id for c in coaches]),
                TrainingSession.start_time >= timeutils.start_of_day(start_date),
                TrainingSession.start_time < timeutils.start_of_day(end_date) + timedelta(days=1),
                TrainingSession.status != SessionStatus.CANCELLED,
            )
        )
        sessions = list(result.scalars().all())

    slots = project_available_slots(coaches, sessions, start_date, end_date, now)
    logger.debug(
        "slots_projected",
        coaches=len(coaches),
        slots=len(slots),
        start_date=start_date,
        end_date=end_date,
    )

    if use_cache:
        await cache_service.set_cached_slots(key, [slot.to_dict() for slot in slots])
    return slots
