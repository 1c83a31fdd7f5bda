"""
Greedy, deficit-ranked allocation of invigilation duties.

Slots are processed once each, in day-major, slot-minor order. Within a
slot the roles are filled in the fixed order regular, reliever, squad,
buffer. There is no backtracking across slots: the pass trades optimality
for speed and reproducibility.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from .constraints import (
    DutyLedger,
    build_unavailability_map,
    eligible_candidates,
    has_back_to_back_conflict,
    rank_candidates,
    split_rooms,
)
from .logger import get_logger
from .models import (
    Assignment,
    DutySlot,
    ExamStructure,
    Faculty,
    IncompleteSlot,
    Role,
    ROLE_ORDER,
    SHORTFALL_KINDS,
    UnavailableFaculty,
    Violation,
    ViolationKind,
    slot_label,
)

logger = get_logger(__name__)

POLICIES = ('warn', 'error')


@dataclass
class AllocationOutcome:
    """Raw allocator output, before consistency checks and the duty overview."""
    assignments: List[Assignment] = field(default_factory=list)
    incomplete_slots: List[IncompleteSlot] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def check_policy(name: str, value: str) -> str:
    if value not in POLICIES:
        raise ValueError(f"{name} must be one of {', '.join(POLICIES)}, got {value!r}")
    return value


def allocate_greedy(faculty: Sequence[Faculty],
                    structure: ExamStructure,
                    unavailability: Sequence[UnavailableFaculty],
                    back_to_back_policy: str = 'warn',
                    quota_policy: str = 'warn') -> AllocationOutcome:
    """
    Assign duties for every slot of the exam in a single pass.

    Args:
        faculty: Roster of faculty members
        structure: Slots, role capacities and designation targets
        unavailability: Dates on which faculty members cannot serve
        back_to_back_policy: 'warn' places a back-to-back candidate when no
            substitute exists and records a violation; 'error' leaves the
            duty unfilled instead
        quota_policy: 'warn' lets faculty exceed their role target when
            needed; 'error' never selects a faculty member at their target

    Returns:
        AllocationOutcome built from fresh structures; inputs are not touched
    """
    check_policy('back_to_back_policy', back_to_back_policy)
    check_policy('quota_policy', quota_policy)

    ledger = DutyLedger()
    unavailability_map = build_unavailability_map(unavailability)
    outcome = AllocationOutcome()

    slots = structure.ordered_slots()
    logger.info("Allocating %d slot(s) across %d faculty", len(slots), len(faculty))

    for duty_slot in slots:
        slot_assignments = _allocate_slot(
            duty_slot, faculty, structure, ledger, unavailability_map,
            outcome, back_to_back_policy, quota_policy,
        )
        # Counters move only once the whole slot is settled
        for assignment in slot_assignments:
            ledger.record(assignment.faculty_id, assignment.role)
        outcome.assignments.extend(slot_assignments)

    outcome.warnings.extend(quota_warnings(faculty, structure, ledger))
    logger.info("Allocated %d duties, %d incomplete role(s)",
                len(outcome.assignments), len(outcome.incomplete_slots))
    return outcome


def _allocate_slot(duty_slot: DutySlot,
                   faculty: Sequence[Faculty],
                   structure: ExamStructure,
                   ledger: DutyLedger,
                   unavailability_map: Dict[str, Set[str]],
                   outcome: AllocationOutcome,
                   back_to_back_policy: str,
                   quota_policy: str) -> List[Assignment]:
    label = slot_label(duty_slot.day, duty_slot.slot)
    slot_assignments: List[Assignment] = []
    filled: Dict[Role, int] = {}

    for role in ROLE_ORDER:
        needed = duty_slot.required(role)
        capacity = needed

        if role == Role.REGULAR and duty_slot.has_room_mismatch():
            capacity = min(needed, len(duty_slot.rooms))
            outcome.violations.append(Violation(
                kind=ViolationKind.ROOM_MISMATCH,
                day=duty_slot.day,
                slot=duty_slot.slot,
                role=role,
                message=(f'{label}: {len(duty_slot.rooms)} rooms provided but '
                         f'{needed} regular duties needed'),
            ))
            logger.warning("%s: room count does not match regular duties", label)

        if needed == 0:
            continue

        candidates = eligible_candidates(faculty, duty_slot, role, structure, ledger, unavailability_map)
        if quota_policy == 'error':
            candidates = [c for c in candidates
                          if ledger.count(c.faculty_id, role) < structure.target(c.designation, role)]
        ranked = rank_candidates(candidates, ledger, structure, role)

        selected = _select(ranked, capacity, duty_slot, role, structure, ledger,
                           outcome, back_to_back_policy)
        for member in selected:
            ledger.occupy(duty_slot.day, duty_slot.slot, member.faculty_id)
        slot_assignments.extend(_build_assignments(duty_slot, role, selected))

        filled[role] = len(selected)

    incomplete, violations = shortfalls(duty_slot, filled)
    outcome.incomplete_slots.extend(incomplete)
    outcome.violations.extend(violations)
    for entry in incomplete:
        logger.warning("%s: %s shortfall (%d/%d)", label, entry.role.value, entry.assigned, entry.needed)
    return slot_assignments


def _select(ranked: List[Faculty],
            capacity: int,
            duty_slot: DutySlot,
            role: Role,
            structure: ExamStructure,
            ledger: DutyLedger,
            outcome: AllocationOutcome,
            back_to_back_policy: str) -> List[Faculty]:
    """
    Take the top ``capacity`` candidates, deferring back-to-back conflicts.

    Deferred candidates are only reached when no conflict-free substitute
    is left.
    """
    clear, deferred = [], []
    for member in ranked:
        if has_back_to_back_conflict(member.faculty_id, structure, duty_slot.day, duty_slot.slot, ledger):
            deferred.append(member)
        else:
            clear.append(member)

    selected = clear[:capacity]
    label = slot_label(duty_slot.day, duty_slot.slot)
    for member in deferred[:capacity - len(selected)]:
        if back_to_back_policy == 'warn':
            selected.append(member)
            message = (f'{label}: {member.faculty_id} placed as {role.value} back-to-back '
                       f'with the previous slot; no substitute was available')
        else:
            message = (f'{label}: {role.value} duty left unfilled; only {member.faculty_id} '
                       f'remained and would serve back-to-back')
        outcome.violations.append(Violation(
            kind=ViolationKind.BACK_TO_BACK,
            day=duty_slot.day,
            slot=duty_slot.slot,
            faculty_id=member.faculty_id,
            role=role,
            message=message,
        ))
        logger.warning(message)
    return selected


def _build_assignments(duty_slot: DutySlot, role: Role, selected: List[Faculty]) -> List[Assignment]:
    if role == Role.REGULAR:
        return [
            Assignment(day=duty_slot.day, slot=duty_slot.slot, faculty_id=member.faculty_id,
                       role=role, room_number=room)
            for member, room in zip(selected, duty_slot.rooms)
        ]
    if role in (Role.RELIEVER, Role.SQUAD):
        coverage = split_rooms(duty_slot.rooms, len(selected))
        return [
            Assignment(day=duty_slot.day, slot=duty_slot.slot, faculty_id=member.faculty_id,
                       role=role, rooms=rooms)
            for member, rooms in zip(selected, coverage)
        ]
    return [
        Assignment(day=duty_slot.day, slot=duty_slot.slot, faculty_id=member.faculty_id, role=role)
        for member in selected
    ]


def quota_warnings(faculty: Sequence[Faculty], structure: ExamStructure, ledger: DutyLedger) -> List[str]:
    """Quota overruns and under-served faculty, one line each."""
    warnings = []
    for member in sorted(faculty, key=lambda f: f.faculty_id):
        for role in ROLE_ORDER:
            count = ledger.count(member.faculty_id, role)
            target = structure.target(member.designation, role)
            if count > target:
                warnings.append(f'Faculty {member.faculty_id} exceeds {role.value} quota ({count}/{target})')
        target_total = sum(structure.target(member.designation, role) for role in ROLE_ORDER)
        assigned_total = ledger.total(member.faculty_id)
        if assigned_total < target_total:
            warnings.append(f'Faculty {member.faculty_id} assigned {assigned_total}/{target_total} duties')
    return warnings


def attach_rooms(duty_slot: DutySlot, picks: Dict[Role, List[Faculty]]) -> List[Assignment]:
    """Turn per-role selections for one slot into assignments, rooms included."""
    assignments: List[Assignment] = []
    for role in ROLE_ORDER:
        assignments.extend(_build_assignments(duty_slot, role, picks.get(role, [])))
    return assignments


def shortfalls(duty_slot: DutySlot, filled: Dict[Role, int]) -> Tuple[List[IncompleteSlot], List[Violation]]:
    """Incomplete roles of a slot given how many duties each role received."""
    incomplete, violations = [], []
    label = slot_label(duty_slot.day, duty_slot.slot)
    for role in ROLE_ORDER:
        needed = duty_slot.required(role)
        assigned = filled.get(role, 0)
        if assigned >= needed:
            continue
        incomplete.append(IncompleteSlot(day=duty_slot.day, slot=duty_slot.slot, role=role,
                                         needed=needed, assigned=assigned))
        if role in SHORTFALL_KINDS:
            violations.append(Violation(
                kind=SHORTFALL_KINDS[role], day=duty_slot.day, slot=duty_slot.slot, role=role,
                message=f'{label}: only {assigned} of {needed} {role.value} duties could be filled',
            ))
    return incomplete, violations
