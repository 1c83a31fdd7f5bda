"""
Data types shared by the allocator, the reporter and the incremental editor.
"""

from dataclasses import dataclass, field, replace
from datetime import date as date_type
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Role(str, Enum):
    """Duty roles, in the order the allocator fills them."""
    REGULAR = 'regular'
    RELIEVER = 'reliever'
    SQUAD = 'squad'
    BUFFER = 'buffer'

    @property
    def label(self) -> str:
        return self.value.upper()


ROLE_ORDER: Tuple[Role, ...] = (Role.REGULAR, Role.RELIEVER, Role.SQUAD, Role.BUFFER)


class ViolationKind(str, Enum):
    SLOT_UNIQUENESS = 'SLOT_UNIQUENESS'
    ROOM_MISMATCH = 'ROOM_MISMATCH'
    BACK_TO_BACK = 'BACK_TO_BACK'
    NO_ELIGIBLE_RELIEVER = 'NO_ELIGIBLE_RELIEVER'
    NO_ELIGIBLE_SQUAD = 'NO_ELIGIBLE_SQUAD'
    NO_ELIGIBLE_BUFFER = 'NO_ELIGIBLE_BUFFER'
    BUFFER_LIMIT = 'BUFFER_LIMIT'


# Shortfall kind per role; regular shortfall is reported through ROOM_MISMATCH
SHORTFALL_KINDS: Dict[Role, ViolationKind] = {
    Role.RELIEVER: ViolationKind.NO_ELIGIBLE_RELIEVER,
    Role.SQUAD: ViolationKind.NO_ELIGIBLE_SQUAD,
    Role.BUFFER: ViolationKind.NO_ELIGIBLE_BUFFER,
}


def slot_key(day: int, slot: int) -> str:
    return f'd{day}-s{slot}'


def slot_label(day: int, slot: int) -> str:
    """One-based label used in messages, e.g. ``Day 1 Slot 2``."""
    return f'Day {day + 1} Slot {slot + 1}'


def faculty_sort_key(faculty) -> Tuple[str, str, str]:
    """Canonical roster order: designation, then name, then id."""
    return (faculty.designation or '', faculty.faculty_name or '', faculty.faculty_id or '')


@dataclass(frozen=True)
class Faculty:
    faculty_id: str
    faculty_name: str
    designation: str
    department: str = ''
    phone_no: str = ''
    s_no: int = 0


@dataclass(frozen=True)
class DutySlot:
    """
    One examination period of the schedule.

    ``(day, slot)`` are zero-indexed and unique across the schedule. The
    number of rooms must equal ``regular_duties``: every regular duty
    occupies exactly one room.
    """
    day: int
    slot: int
    date: date_type
    start_time: str = ''
    end_time: str = ''
    regular_duties: int = 0
    reliever_duties: int = 0
    squad_duties: int = 0
    buffer_duties: int = 0
    rooms: Tuple[str, ...] = ()
    subject_code: Optional[str] = None

    @property
    def key(self) -> str:
        return slot_key(self.day, self.slot)

    @property
    def date_iso(self) -> str:
        return self.date.strftime('%Y-%m-%d')

    @property
    def time_label(self) -> str:
        if self.start_time or self.end_time:
            return f'{self.start_time} - {self.end_time}'
        return ''

    @property
    def total_duties(self) -> int:
        return (self.regular_duties + self.reliever_duties
                + self.squad_duties + self.buffer_duties)

    def required(self, role: Role) -> int:
        """Number of faculty the slot asks for in the given role."""
        return {
            Role.REGULAR: self.regular_duties,
            Role.RELIEVER: self.reliever_duties,
            Role.SQUAD: self.squad_duties,
            Role.BUFFER: self.buffer_duties,
        }[Role(role)]

    def has_room_mismatch(self) -> bool:
        return len(self.rooms) != self.regular_duties


@dataclass(frozen=True)
class ExamStructure:
    """
    Slots of the exam plus the per-faculty duty targets by designation.

    The count maps hold targets over the whole exam, not per slot. A
    missing ``designation_buffer_eligibility`` map makes every designation
    buffer-eligible; designations absent from a present map are eligible too.
    """
    days: int
    duty_slots: Tuple[DutySlot, ...]
    designation_duty_counts: Dict[str, int] = field(default_factory=dict)
    designation_reliever_counts: Dict[str, int] = field(default_factory=dict)
    designation_squad_counts: Dict[str, int] = field(default_factory=dict)
    designation_buffer_counts: Dict[str, int] = field(default_factory=dict)
    designation_buffer_eligibility: Optional[Dict[str, bool]] = None

    @property
    def slots(self) -> int:
        """Largest number of slots held by any single day."""
        per_day: Dict[int, int] = {}
        for duty_slot in self.duty_slots:
            per_day[duty_slot.day] = per_day.get(duty_slot.day, 0) + 1
        return max(per_day.values(), default=0)

    def target(self, designation: str, role: Role) -> int:
        counts = {
            Role.REGULAR: self.designation_duty_counts,
            Role.RELIEVER: self.designation_reliever_counts,
            Role.SQUAD: self.designation_squad_counts,
            Role.BUFFER: self.designation_buffer_counts,
        }[Role(role)]
        return int(counts.get(designation, 0) or 0)

    def is_buffer_eligible(self, designation: str) -> bool:
        if self.designation_buffer_eligibility is None:
            return True
        return bool(self.designation_buffer_eligibility.get(designation, True))

    def ordered_slots(self) -> List[DutySlot]:
        """Slots in day-major, slot-minor order."""
        return sorted(self.duty_slots, key=lambda s: (s.day, s.slot))

    def find_slot(self, day: int, slot: int) -> Optional[DutySlot]:
        for duty_slot in self.duty_slots:
            if duty_slot.day == day and duty_slot.slot == slot:
                return duty_slot
        return None


@dataclass(frozen=True)
class UnavailableFaculty:
    faculty_id: str
    date: str  # YYYY-MM-DD


@dataclass(frozen=True)
class Assignment:
    """
    One faculty member holding one role in one slot.

    ``room_number`` is only set for regular duties. ``rooms`` lists the rooms
    a reliever or squad member covers.
    """
    day: int
    slot: int
    faculty_id: str
    role: Role
    room_number: Optional[str] = None
    rooms: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return slot_key(self.day, self.slot)

    def with_faculty(self, faculty_id: str) -> 'Assignment':
        return replace(self, faculty_id=faculty_id)


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    day: int
    slot: int
    message: str
    faculty_id: Optional[str] = None
    role: Optional[Role] = None


@dataclass(frozen=True)
class IncompleteSlot:
    day: int
    slot: int
    role: Role
    needed: int
    assigned: int


@dataclass
class FacultyDutyOverview:
    faculty_id: str
    faculty_name: str = ''
    designation: str = ''
    regular: int = 0
    reliever: int = 0
    squad: int = 0
    buffer: int = 0
    coverage: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.regular + self.reliever + self.squad + self.buffer

    def count(self, role: Role) -> int:
        return getattr(self, Role(role).value)


@dataclass
class AssignmentResult:
    success: bool
    assignments: List[Assignment] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    incomplete_slots: List[IncompleteSlot] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)
    duty_overview: List[FacultyDutyOverview] = field(default_factory=list)


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
