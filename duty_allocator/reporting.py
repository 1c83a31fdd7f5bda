"""
Consistency checks and per-faculty duty totals over a finished schedule.
"""

from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .constraints import DutyLedger, preceding_slot
from .models import (
    Assignment,
    ExamStructure,
    Faculty,
    FacultyDutyOverview,
    Role,
    ROLE_ORDER,
    Violation,
    ViolationKind,
    faculty_sort_key,
    slot_label,
)


def detect_consistency_violations(assignments: Sequence[Assignment],
                                  structure: ExamStructure,
                                  faculty: Sequence[Faculty]) -> List[Violation]:
    """
    Find broken guarantees: a faculty member holding several duties in one
    slot, or a buffer duty given to a buffer-ineligible designation.

    Neither should happen after allocation or validated edits; a hit means a
    defect upstream, so both are always reported.
    """
    violations: List[Violation] = []

    held: Dict[Tuple[int, int, str], List[Assignment]] = defaultdict(list)
    for assignment in assignments:
        held[(assignment.day, assignment.slot, assignment.faculty_id)].append(assignment)

    for (day, slot, faculty_id), duties in sorted(held.items()):
        if len(duties) > 1:
            roles = ', '.join(d.role.label for d in duties)
            violations.append(Violation(
                kind=ViolationKind.SLOT_UNIQUENESS,
                day=day,
                slot=slot,
                faculty_id=faculty_id,
                message=f'{slot_label(day, slot)}: {faculty_id} holds {len(duties)} duties ({roles})',
            ))

    designation_of = {member.faculty_id: member.designation for member in faculty}
    for assignment in assignments:
        if assignment.role != Role.BUFFER:
            continue
        designation = designation_of.get(assignment.faculty_id)
        if designation is not None and not structure.is_buffer_eligible(designation):
            violations.append(Violation(
                kind=ViolationKind.BUFFER_LIMIT,
                day=assignment.day,
                slot=assignment.slot,
                faculty_id=assignment.faculty_id,
                role=Role.BUFFER,
                message=(f'{slot_label(assignment.day, assignment.slot)}: {assignment.faculty_id} '
                         f'({designation}) is not eligible for buffer duty'),
            ))
    return violations


def audit_schedule(assignments: Sequence[Assignment],
                   structure: ExamStructure,
                   faculty: Sequence[Faculty]) -> List[Violation]:
    """
    Re-derive every checkable violation from an assignment set.

    Meant for schedules that went through manual edits: on top of the
    consistency checks it reports room problems and back-to-back duties.
    Shortfall kinds are not re-derived since their cause is not visible in
    the assignments alone.
    """
    violations = detect_consistency_violations(assignments, structure, faculty)
    violations.extend(_room_violations(assignments, structure))
    violations.extend(_back_to_back_violations(assignments, structure))
    return sorted(violations, key=lambda v: (v.day, v.slot))


def _room_violations(assignments: Sequence[Assignment], structure: ExamStructure) -> List[Violation]:
    violations = []
    for duty_slot in structure.ordered_slots():
        label = slot_label(duty_slot.day, duty_slot.slot)
        if duty_slot.has_room_mismatch():
            violations.append(Violation(
                kind=ViolationKind.ROOM_MISMATCH, day=duty_slot.day, slot=duty_slot.slot,
                role=Role.REGULAR,
                message=(f'{label}: {len(duty_slot.rooms)} rooms provided but '
                         f'{duty_slot.regular_duties} regular duties needed'),
            ))

        taken: Dict[str, str] = {}
        for assignment in assignments:
            if (assignment.day, assignment.slot) != (duty_slot.day, duty_slot.slot):
                continue
            if assignment.role != Role.REGULAR:
                continue
            room = assignment.room_number
            if room is None or room not in duty_slot.rooms:
                message = f'{label}: {assignment.faculty_id} holds regular duty in unknown room {room}'
            elif room in taken:
                message = f'{label}: room {room} assigned to both {taken[room]} and {assignment.faculty_id}'
            else:
                taken[room] = assignment.faculty_id
                continue
            violations.append(Violation(
                kind=ViolationKind.ROOM_MISMATCH, day=duty_slot.day, slot=duty_slot.slot,
                faculty_id=assignment.faculty_id, role=Role.REGULAR, message=message,
            ))
    return violations


def _back_to_back_violations(assignments: Sequence[Assignment], structure: ExamStructure) -> List[Violation]:
    ledger = DutyLedger.from_assignments(assignments)
    violations = []
    seen = set()
    for assignment in assignments:
        key = (assignment.day, assignment.slot, assignment.faculty_id)
        if key in seen:
            continue
        seen.add(key)
        previous = preceding_slot(structure, assignment.day, assignment.slot)
        if previous is not None and ledger.holds_slot(assignment.faculty_id, *previous):
            violations.append(Violation(
                kind=ViolationKind.BACK_TO_BACK, day=assignment.day, slot=assignment.slot,
                faculty_id=assignment.faculty_id, role=assignment.role,
                message=(f'{slot_label(assignment.day, assignment.slot)}: {assignment.faculty_id} '
                         f'serves back-to-back with {slot_label(*previous)}'),
            ))
    return violations


def build_duty_overview(assignments: Sequence[Assignment],
                        faculty: Sequence[Faculty]) -> List[FacultyDutyOverview]:
    """
    Per-faculty duty totals by role, with the rooms each reliever or squad
    duty covers keyed by ``d{day}-s{slot}``.

    Every roster member gets an entry, including those with no duty. An id
    found only in the assignments gets a bare entry as well.
    """
    overview: Dict[str, FacultyDutyOverview] = {
        member.faculty_id: FacultyDutyOverview(
            faculty_id=member.faculty_id,
            faculty_name=member.faculty_name,
            designation=member.designation,
        )
        for member in faculty
    }

    for assignment in assignments:
        entry = overview.get(assignment.faculty_id)
        if entry is None:
            entry = overview[assignment.faculty_id] = FacultyDutyOverview(faculty_id=assignment.faculty_id)
        field_name = assignment.role.value
        setattr(entry, field_name, getattr(entry, field_name) + 1)
        if assignment.role in (Role.RELIEVER, Role.SQUAD):
            entry.coverage.setdefault(assignment.key, []).extend(assignment.rooms)

    return sorted(overview.values(), key=faculty_sort_key)


def fairness_summary(overview: Sequence[FacultyDutyOverview],
                     structure: ExamStructure) -> Dict[str, Dict[str, float]]:
    """
    Spread of duty counts per role and total absolute deviation from quota.

    Returns:
        Mapping of role name (plus 'total') to mean, std, min, max and
        quota_deviation
    """
    summary: Dict[str, Dict[str, float]] = {}
    if not overview:
        return summary

    for role in ROLE_ORDER:
        counts = np.array([entry.count(role) for entry in overview], dtype=float)
        targets = np.array([structure.target(entry.designation, role) for entry in overview], dtype=float)
        summary[role.value] = _spread(counts, targets)

    totals = np.array([entry.total for entry in overview], dtype=float)
    total_targets = np.array([
        sum(structure.target(entry.designation, role) for role in ROLE_ORDER) for entry in overview
    ], dtype=float)
    summary['total'] = _spread(totals, total_targets)
    return summary


def _spread(counts: np.ndarray, targets: np.ndarray) -> Dict[str, float]:
    return {
        'mean': float(np.mean(counts)),
        'std': float(np.std(counts)),
        'min': float(np.min(counts)),
        'max': float(np.max(counts)),
        'quota_deviation': float(np.sum(np.abs(counts - targets))),
    }
