"""
Time-slot calculus: project a coach's weekly template, one-off additions,
blocks and existing sessions onto concrete slots for a calendar day.

RULES
=====

For a given day:

  1. Every template row of that weekday is cut into slots of `row.duration`
     minutes (coach default when unset). A slot is BOOKED when a live session
     overlaps it, else BLOCKED when a block overlaps it, else FREE.
     A session wins over a block: data is inconsistent if both exist, and
     showing the booking keeps the member visible to the coach.
  2. Every addition on that date is cut the same way (default duration).
     Its slots are EXCEPTIONAL unless a session or block overrides them,
     and they replace a template slot starting at the same time.
  3. The parts of a block on that date that no slot above covers are still
     emitted as BLOCKED slots of up to 60 minutes, so blocks show up outside
     availability. A block 08:30-09:30 over a 09:00 template window yields
     08:30-09:00 on its own plus the blocked 09:00 slot.
  4. Slots are returned sorted by start time.

Overlap is half-open everywhere: [start, end).

Sessions and blocks are looked up through a TimeIndex of fixed-width
buckets (15 minutes by default), so rendering weeks of slots does not
rescan every record for every slot.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import ClassVar, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from gymbook.core.timeutils import (
    at_minutes,
    day_of_week,
    intervals_overlap,
    iter_days,
    parse_hhmm,
    start_of_day,
)
from gymbook.models.availability import AvailabilityAddition, BlockedSlot, WeeklyAvailability
from gymbook.models.training_session import SessionStatus, TrainingSession

STANDALONE_BLOCK_MINUTES = 60

R = TypeVar("R")


# ---------------------------------------------------------------------------
# Slot variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class _DaySlot:
    start_time: datetime
    end_time: datetime
    is_individual: bool = False
    is_group: bool = False
    room_id: Optional[int] = None
    is_exception: bool = False

    status: ClassVar[str]

    @property
    def duration(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def is_recurring_source(self) -> bool:
        return False


@dataclass(frozen=True, kw_only=True)
class FreeSlot(_DaySlot):
    status: ClassVar[str] = "FREE"


@dataclass(frozen=True, kw_only=True)
class ExceptionalSlot(_DaySlot):
    status: ClassVar[str] = "EXCEPTIONAL"
    addition: AvailabilityAddition
    is_exception: bool = True


@dataclass(frozen=True, kw_only=True)
class BookedSlot(_DaySlot):
    status: ClassVar[str] = "BOOKED"
    session: TrainingSession

    @property
    def is_recurring_source(self) -> bool:
        return self.session.recurring_booking_id is not None


@dataclass(frozen=True, kw_only=True)
class BlockedSlotView(_DaySlot):
    status: ClassVar[str] = "BLOCKED"
    block: BlockedSlot


Slot = Union[FreeSlot, ExceptionalSlot, BookedSlot, BlockedSlotView]


# ---------------------------------------------------------------------------
# Bucketed lookup
# ---------------------------------------------------------------------------

class TimeIndex(Generic[R]):
    """Maps fixed-width time buckets to the records whose range touches them."""

    def __init__(self, records: Iterable[R], bucket_minutes: int = 15):
        if bucket_minutes <= 0:
            raise ValueError("bucket_minutes must be positive")
        self._width = timedelta(minutes=bucket_minutes)
        self._buckets: Dict[datetime, List[R]] = defaultdict(list)
        for record in sorted(records, key=lambda r: r.start_time):
            if record.end_time <= record.start_time:
                continue
            for key in self._keys(record.start_time, record.end_time):
                self._buckets[key].append(record)

    def _floor(self, moment: datetime) -> datetime:
        day = start_of_day(moment)
        offset = (moment - day) // self._width
        return day + offset * self._width

    def _keys(self, start: datetime, end: datetime):
        key = self._floor(start)
        while key < end:
            yield key
            key += self._width

    def find(self, start: datetime, end: datetime) -> Optional[R]:
        """Earliest-starting record overlapping [start, end), if any."""
        best: Optional[R] = None
        for key in self._keys(start, end):
            for record in self._buckets.get(key, ()):
                if not intervals_overlap(record.start_time, record.end_time, start, end):
                    continue
                if best is None or record.start_time < best.start_time:
                    best = record
        return best


# ---------------------------------------------------------------------------
# Calculus
# ---------------------------------------------------------------------------

@dataclass
class _Sources:
    templates_by_day: Dict[int, List[WeeklyAvailability]]
    additions_by_date: Dict[date, List[AvailabilityAddition]]
    blocks_by_date: Dict[date, List[BlockedSlot]]
    session_index: TimeIndex
    block_index: TimeIndex
    default_duration: int = 60


def _build_sources(
    templates: Iterable[WeeklyAvailability],
    additions: Iterable[AvailabilityAddition],
    blocks: Iterable[BlockedSlot],
    sessions: Iterable[TrainingSession],
    default_duration: int,
    bucket_minutes: int,
) -> _Sources:
    templates_by_day: Dict[int, List[WeeklyAvailability]] = defaultdict(list)
    for row in templates:
        templates_by_day[row.day_of_week].append(row)

    additions_by_date: Dict[date, List[AvailabilityAddition]] = defaultdict(list)
    for addition in additions:
        additions_by_date[addition.start_time.date()].append(addition)

    blocks = list(blocks)
    blocks_by_date: Dict[date, List[BlockedSlot]] = defaultdict(list)
    for block in blocks:
        current = block.start_time.date()
        last = (block.end_time - timedelta(microseconds=1)).date()
        while current <= last:
            blocks_by_date[current].append(block)
            current += timedelta(days=1)

    live_sessions = [s for s in sessions if s.status != SessionStatus.CANCELLED]

    return _Sources(
        templates_by_day=templates_by_day,
        additions_by_date=additions_by_date,
        blocks_by_date=blocks_by_date,
        session_index=TimeIndex(live_sessions, bucket_minutes),
        block_index=TimeIndex(blocks, bucket_minutes),
        default_duration=default_duration,
    )


def _walk(start: datetime, end: datetime, step_minutes: int):
    """Cut [start, end) into consecutive windows; the last one is clipped to `end`."""
    step = timedelta(minutes=step_minutes)
    current = start
    while current < end:
        yield current, min(current + step, end)
        current += step


def _uncovered(start: datetime, end: datetime, taken: Iterable[Slot]) -> List[Tuple[datetime, datetime]]:
    """Parts of [start, end) that no slot in `taken` overlaps."""
    gaps = []
    cursor = start
    for slot in sorted(taken, key=lambda s: s.start_time):
        if slot.end_time <= cursor or slot.start_time >= end:
            continue
        if slot.start_time > cursor:
            gaps.append((cursor, slot.start_time))
        cursor = max(cursor, slot.end_time)
        if cursor >= end:
            break
    if cursor < end:
        gaps.append((cursor, end))
    return gaps


def _resolve(
    sources: _Sources,
    start: datetime,
    end: datetime,
    *,
    is_individual: bool,
    is_group: bool,
    room_id: Optional[int],
    addition: Optional[AvailabilityAddition] = None,
) -> Slot:
    common = dict(
        start_time=start,
        end_time=end,
        is_individual=is_individual,
        is_group=is_group,
        is_exception=addition is not None,
    )
    session = sources.session_index.find(start, end)
    if session is not None:
        return BookedSlot(session=session, room_id=session.room_id or room_id, **common)
    block = sources.block_index.find(start, end)
    if block is not None:
        return BlockedSlotView(block=block, room_id=room_id, **common)
    if addition is not None:
        return ExceptionalSlot(addition=addition, room_id=room_id, **common)
    return FreeSlot(room_id=room_id, **common)


def _day_slots(day: date, day_of_week: int, sources: _Sources) -> List[Slot]:
    slots: Dict[datetime, Slot] = {}

    # 1. Weekly template
    for row in sources.templates_by_day.get(day_of_week, ()):
        window_start = at_minutes(day, parse_hhmm(row.start_time))
        window_end = at_minutes(day, parse_hhmm(row.end_time))
        for start, end in _walk(window_start, window_end, row.duration or sources.default_duration):
            if start in slots:
                continue
            slots[start] = _resolve(
                sources, start, end,
                is_individual=row.is_individual,
                is_group=row.is_group,
                room_id=row.room_id,
            )

    # 2. Additions replace template slots at the same time of day
    for addition in sources.additions_by_date.get(day, ()):
        for start, end in _walk(addition.start_time, addition.end_time, sources.default_duration):
            slots[start] = _resolve(
                sources, start, end,
                is_individual=addition.is_individual,
                is_group=addition.is_group,
                room_id=addition.room_id,
                addition=addition,
            )

    # 3. Blocks outside any window
    day_start = start_of_day(day)
    day_end = day_start + timedelta(days=1)
    for block in sources.blocks_by_date.get(day, ()):
        block_start = max(block.start_time, day_start)
        block_end = min(block.end_time, day_end)
        for gap_start, gap_end in _uncovered(block_start, block_end, slots.values()):
            for start, end in _walk(gap_start, gap_end, STANDALONE_BLOCK_MINUTES):
                slots[start] = BlockedSlotView(block=block, start_time=start, end_time=end)

    # 4. Chronological order
    return [slots[key] for key in sorted(slots)]


def compute_day_slots(
    day: date,
    templates: Iterable[WeeklyAvailability],
    additions: Iterable[AvailabilityAddition] = (),
    blocks: Iterable[BlockedSlot] = (),
    sessions: Iterable[TrainingSession] = (),
    default_duration: int = 60,
    bucket_minutes: int = 15,
) -> List[Slot]:
    """Slots for one calendar day, ordered by start time."""
    sources = _build_sources(templates, additions, blocks, sessions, default_duration, bucket_minutes)
    return _day_slots(day, day_of_week(day), sources)


def compute_calendar(
    start_date: date,
    end_date: date,
    templates: Iterable[WeeklyAvailability],
    additions: Iterable[AvailabilityAddition] = (),
    blocks: Iterable[BlockedSlot] = (),
    sessions: Iterable[TrainingSession] = (),
    default_duration: int = 60,
    bucket_minutes: int = 15,
) -> Dict[date, List[Slot]]:
    """Slots for every day in [start_date, end_date], sharing one index build."""
    sources = _build_sources(templates, additions, blocks, sessions, default_duration, bucket_minutes)
    return {day: _day_slots(day, weekday, sources) for day, weekday in iter_days(start_date, end_date)}
