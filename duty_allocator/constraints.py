"""
Predicates describing what makes an assignment legal in a given schedule
state, and the running duty counter threaded through the allocation loop.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .exceptions import StructuralError
from .models import (
    Assignment,
    DutySlot,
    ExamStructure,
    Faculty,
    Role,
    ROLE_ORDER,
    UnavailableFaculty,
)

SlotId = Tuple[int, int]


class DutyLedger:
    """
    Per-faculty, per-role duty counts plus the faculty occupying each slot.

    The allocator creates a fresh ledger per run and threads it through the
    slot loop, so no counting state outlives a call.
    """

    def __init__(self):
        self._counts: Dict[Tuple[str, Role], int] = defaultdict(int)
        self._occupied: Dict[SlotId, Set[str]] = defaultdict(set)

    @classmethod
    def from_assignments(cls, assignments: Iterable[Assignment]) -> 'DutyLedger':
        ledger = cls()
        for assignment in assignments:
            ledger.occupy(assignment.day, assignment.slot, assignment.faculty_id)
            ledger.record(assignment.faculty_id, assignment.role)
        return ledger

    def count(self, faculty_id: str, role: Role) -> int:
        return self._counts.get((faculty_id, Role(role)), 0)

    def total(self, faculty_id: str) -> int:
        return sum(self.count(faculty_id, role) for role in ROLE_ORDER)

    def record(self, faculty_id: str, role: Role) -> None:
        self._counts[(faculty_id, Role(role))] += 1

    def occupy(self, day: int, slot: int, faculty_id: str) -> None:
        self._occupied[(day, slot)].add(faculty_id)

    def holds_slot(self, faculty_id: str, day: int, slot: int) -> bool:
        return faculty_id in self._occupied.get((day, slot), ())


def build_unavailability_map(unavailability: Iterable[UnavailableFaculty]) -> Dict[str, Set[str]]:
    """Map ISO date -> ids of faculty unavailable on that date."""
    by_date: Dict[str, Set[str]] = defaultdict(set)
    for entry in unavailability:
        by_date[entry.date].add(entry.faculty_id)
    return dict(by_date)


def is_unavailable(faculty_id: str, duty_slot: DutySlot,
                   unavailability_map: Dict[str, Set[str]]) -> bool:
    return faculty_id in unavailability_map.get(duty_slot.date_iso, ())


def preceding_slot(structure: ExamStructure, day: int, slot: int) -> Optional[SlotId]:
    """
    Slot that immediately precedes ``(day, slot)`` for back-to-back purposes.

    That is the previous slot index of the same day, or the last slot of the
    previous day when ``slot`` is the first slot of its day.
    """
    if slot > 0:
        return (day, slot - 1)
    previous_day = [s.slot for s in structure.duty_slots if s.day == day - 1]
    if not previous_day:
        return None
    return (day - 1, max(previous_day))


def has_back_to_back_conflict(faculty_id: str, structure: ExamStructure, day: int, slot: int,
                              ledger: DutyLedger) -> bool:
    previous = preceding_slot(structure, day, slot)
    if previous is None:
        return False
    return ledger.holds_slot(faculty_id, *previous)


def quota_deficit(ledger: DutyLedger, faculty: Faculty, structure: ExamStructure, role: Role) -> int:
    """Role count minus designation target; most negative is most underserved."""
    return ledger.count(faculty.faculty_id, role) - structure.target(faculty.designation, role)


def rank_candidates(candidates: Sequence[Faculty], ledger: DutyLedger,
                    structure: ExamStructure, role: Role) -> List[Faculty]:
    return sorted(
        candidates,
        key=lambda f: (quota_deficit(ledger, f, structure, role), f.faculty_id),
    )


def eligible_candidates(faculty: Sequence[Faculty], duty_slot: DutySlot, role: Role,
                        structure: ExamStructure, ledger: DutyLedger,
                        unavailability_map: Dict[str, Set[str]]) -> List[Faculty]:
    """Faculty free in this slot, available on its date and, for buffer, eligible."""
    eligible = []
    for member in faculty:
        if ledger.holds_slot(member.faculty_id, duty_slot.day, duty_slot.slot):
            continue
        if is_unavailable(member.faculty_id, duty_slot, unavailability_map):
            continue
        if role == Role.BUFFER and not structure.is_buffer_eligible(member.designation):
            continue
        eligible.append(member)
    return eligible


def split_rooms(rooms: Sequence[str], parts: int) -> List[Tuple[str, ...]]:
    """Split rooms into ``parts`` contiguous, near-equal chunks."""
    if parts <= 0:
        return []
    if not rooms:
        return [() for _ in range(parts)]
    chunks = np.array_split(np.array(list(rooms), dtype=object), parts)
    return [tuple(str(room) for room in chunk) for chunk in chunks]


def validate_structure(faculty: Sequence[Faculty], structure: ExamStructure) -> List[str]:
    """
    Check the inputs for malformations that prevent allocation.

    Returns:
        List of non-fatal warnings

    Raises:
        StructuralError: If allocation cannot start
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not faculty:
        errors.append('No faculty members available for assignment')
    if not structure.duty_slots:
        errors.append('No duty slots configured')

    seen_ids: Set[str] = set()
    for member in faculty:
        if member.faculty_id in seen_ids:
            errors.append(f'Duplicate faculty ID {member.faculty_id}')
        seen_ids.add(member.faculty_id)

    seen_slots: Set[SlotId] = set()
    for duty_slot in structure.duty_slots:
        label = f'Day {duty_slot.day + 1} Slot {duty_slot.slot + 1}'
        if (duty_slot.day, duty_slot.slot) in seen_slots:
            errors.append(f'{label}: duplicate slot')
        seen_slots.add((duty_slot.day, duty_slot.slot))
        duplicates = sorted({room for room in duty_slot.rooms if duty_slot.rooms.count(room) > 1})
        if duplicates:
            errors.append(f'{label}: room listed more than once ({", ".join(duplicates)})')
        if duty_slot.day < 0 or duty_slot.slot < 0:
            errors.append(f'{label}: day and slot indices must be non-negative')
        elif structure.days and duty_slot.day >= structure.days:
            errors.append(f'{label}: day is outside the {structure.days}-day exam')
        for role in ROLE_ORDER:
            if duty_slot.required(role) < 0:
                errors.append(f'{label}: {role.value} duties cannot be negative '
                              f'({duty_slot.required(role)})')

    for role in ROLE_ORDER:
        for member in faculty:
            if structure.target(member.designation, role) < 0:
                errors.append(f'Negative {role.value} target for designation {member.designation}')
                break

    if errors:
        raise StructuralError(errors)

    mandatory = sum(s.regular_duties + s.reliever_duties + s.squad_duties
                    for s in structure.duty_slots)
    capacity = sum(structure.target(m.designation, role)
                   for m in faculty for role in (Role.REGULAR, Role.RELIEVER, Role.SQUAD))
    if capacity < mandatory:
        warnings.append(f'Faculty quotas cover {capacity} duties but the schedule needs '
                        f'{mandatory} regular, reliever and squad duties')
    return warnings
