"""Availability and conflict index built once per scheduling run.

The index is a snapshot: it is derived from the repository state read at the
start of a run and then mutated in place by the allocator after every
placement. Nothing here talks to the database.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from jury_planner.domain.models import (
    AvailabilityDeclaration,
    CandidateSlot,
    Faculty,
    FacultyAvailability,
    FacultyLoad,
    Panel,
    PanelDraft,
    RestrictedAvailability,
    Room,
    UnrestrictedAvailability,
    ranges_overlap,
)
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)

SlotTable = dict[str, dict[str, bool]]


@dataclass(frozen=True)
class ConflictWindow:
    start_date: str
    end_date: str


def conflict_window(
    *,
    today: str,
    slots: list[CandidateSlot],
    lookahead_days: int,
) -> ConflictWindow:
    """Return the half-open date window scanned for existing commitments.

    The window always spans ``lookahead_days`` from today and is widened to
    cover every candidate slot, so far-future runs still see their conflicts.
    """
    today_value = datetime.strptime(today, "%Y-%m-%d").date()
    start = today_value
    end = today_value + timedelta(days=lookahead_days)
    if slots:
        first = datetime.strptime(slots[0].date, "%Y-%m-%d").date()
        last = datetime.strptime(slots[-1].date, "%Y-%m-%d").date()
        start = min(start, first)
        end = max(end, last + timedelta(days=1))
    return ConflictWindow(start_date=start.isoformat(), end_date=end.isoformat())


def resolve_availability(
    faculty_ids: Iterable[int],
    declarations: Iterable[AvailabilityDeclaration],
    declared_faculty_ids: Optional[Iterable[int]] = None,
) -> dict[int, FacultyAvailability]:
    """Pick open-world or closed-world availability per faculty member.

    ``declared_faculty_ids`` names everyone who ever submitted a declaration.
    They are closed-world even when none of their declarations fall among
    ``declarations``. Without it, only ``declarations`` decide.
    """
    declared = set(declared_faculty_ids or ())
    windows_by_faculty: dict[int, list] = defaultdict(list)
    for declaration in declarations:
        windows_by_faculty[declaration.faculty_id].append(declaration.as_window())

    resolved: dict[int, FacultyAvailability] = {}
    for faculty_id in faculty_ids:
        windows = windows_by_faculty.get(faculty_id)
        if windows or faculty_id in declared:
            resolved[faculty_id] = RestrictedAvailability(windows=tuple(windows or ()))
        else:
            resolved[faculty_id] = UnrestrictedAvailability()
    return resolved


class AvailabilityIndex:
    """Mutable lookup of who and what is free at each candidate slot."""

    def __init__(
        self,
        *,
        slots: list[CandidateSlot],
        faculty: list[Faculty],
        rooms: list[Room],
        availability: dict[int, FacultyAvailability],
        faculty_slots: dict[int, SlotTable],
        room_slots: dict[int, SlotTable],
        faculty_load: dict[int, FacultyLoad],
    ) -> None:
        self.slots = slots
        self.faculty = faculty
        self.rooms = rooms
        self.availability = availability
        self.faculty_slots = faculty_slots
        self.room_slots = room_slots
        self.faculty_load = faculty_load

    def is_faculty_available(self, faculty_id: int, slot: CandidateSlot) -> bool:
        by_date = self.faculty_slots.get(faculty_id)
        if by_date is not None:
            value = by_date.get(slot.date, {}).get(slot.time_range_key)
            if value is not None:
                return value
        policy = self.availability.get(faculty_id, UnrestrictedAvailability())
        return policy.permits(slot)

    def is_room_available(self, room_id: int, slot: CandidateSlot) -> bool:
        by_date = self.room_slots.get(room_id)
        if by_date is None:
            return True
        return by_date.get(slot.date, {}).get(slot.time_range_key, True)

    def mark_faculty_busy(self, faculty_id: int, slot: CandidateSlot) -> None:
        by_date = self.faculty_slots.setdefault(faculty_id, {})
        by_date.setdefault(slot.date, {})[slot.time_range_key] = False

    def mark_room_busy(self, room_id: int, slot: CandidateSlot) -> None:
        by_date = self.room_slots.setdefault(room_id, {})
        by_date.setdefault(slot.date, {})[slot.time_range_key] = False

    def load_for(self, faculty_id: int) -> Optional[FacultyLoad]:
        return self.faculty_load.get(faculty_id)

    def record_placement(self, draft: PanelDraft, slot: CandidateSlot) -> None:
        """Consume the slot for all three faculty and the room, and bump role counts."""
        for _, faculty_id in draft.role_assignments():
            self.mark_faculty_busy(faculty_id, slot)
        if draft.room_id is not None:
            self.mark_room_busy(draft.room_id, slot)
        president_load = self.faculty_load.get(draft.president_id)
        if president_load is not None:
            president_load.president_count += 1
        reporter_load = self.faculty_load.get(draft.reporter_id)
        if reporter_load is not None:
            reporter_load.reporter_count += 1


def _slots_by_date(slots: list[CandidateSlot]) -> dict[str, list[CandidateSlot]]:
    grouped: dict[str, list[CandidateSlot]] = defaultdict(list)
    for slot in slots:
        grouped[slot.date].append(slot)
    return grouped


def build_availability_index(
    *,
    slots: list[CandidateSlot],
    faculty: list[Faculty],
    rooms: list[Room],
    existing_panels: list[Panel],
    declarations: list[AvailabilityDeclaration],
    extra_faculty_ids: Iterable[int] = (),
    declared_faculty_ids: Optional[Iterable[int]] = None,
) -> AvailabilityIndex:
    """Build faculty/room availability tables and duty loads for a run.

    ``extra_faculty_ids`` covers people who take part in the run without being
    on the roster, typically supervisors from another department.
    ``declared_faculty_ids`` is forwarded to ``resolve_availability``.
    """
    roster_ids = [member.faculty_id for member in faculty]
    indexed_ids = list(dict.fromkeys([*roster_ids, *extra_faculty_ids]))
    availability = resolve_availability(indexed_ids, declarations, declared_faculty_ids)
    slots_on = _slots_by_date(slots)

    faculty_slots: dict[int, SlotTable] = {}
    for faculty_id in indexed_ids:
        policy = availability[faculty_id]
        table: SlotTable = {}
        for slot in slots:
            table.setdefault(slot.date, {})[slot.time_range_key] = policy.permits(slot)
        faculty_slots[faculty_id] = table

    room_slots: dict[int, SlotTable] = {}
    room_by_location = {room.location: room.room_id for room in rooms}
    for room in rooms:
        table = {}
        for slot in slots:
            table.setdefault(slot.date, {})[slot.time_range_key] = True
        room_slots[room.room_id] = table

    faculty_load = {
        member.faculty_id: FacultyLoad(
            supervised_count=member.supervised_count,
            president_count=member.president_count,
            reporter_count=member.reporter_count,
        )
        for member in faculty
    }

    blocked_faculty_slots = 0
    for panel in existing_panels:
        president_load = faculty_load.get(panel.president_id)
        if president_load is not None:
            president_load.president_count += 1
        reporter_load = faculty_load.get(panel.reporter_id)
        if reporter_load is not None:
            reporter_load.reporter_count += 1

        overlapping = [
            slot
            for slot in slots_on.get(panel.date, [])
            if ranges_overlap(slot.start_time, slot.end_time, panel.start_time, panel.end_time)
        ]
        if not overlapping:
            continue
        for faculty_id in panel.faculty_ids():
            table = faculty_slots.get(faculty_id)
            if table is None:
                continue
            for slot in overlapping:
                table[slot.date][slot.time_range_key] = False
                blocked_faculty_slots += 1
        room_id = room_by_location.get(panel.location)
        if room_id is not None:
            for slot in overlapping:
                room_slots[room_id][slot.date][slot.time_range_key] = False

    restricted = sum(
        1 for policy in availability.values() if isinstance(policy, RestrictedAvailability)
    )
    logger.info(
        (
            "Availability index built | slots=%s | faculty=%s | restricted_faculty=%s | "
            "rooms=%s | existing_panels=%s | blocked_faculty_slots=%s"
        ),
        len(slots),
        len(indexed_ids),
        restricted,
        len(rooms),
        len(existing_panels),
        blocked_faculty_slots,
    )
    return AvailabilityIndex(
        slots=slots,
        faculty=faculty,
        rooms=rooms,
        availability=availability,
        faculty_slots=faculty_slots,
        room_slots=room_slots,
        faculty_load=faculty_load,
    )
