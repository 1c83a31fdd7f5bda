"""
Validation of manual edits to an existing schedule.

The validators are pure: they never mutate the assignment list and never
raise. The ``add_assignment``/``update_assignment``/``swap_assignments``
helpers return a fresh list with the edit applied only when it is valid,
so a rejected edit leaves the committed schedule untouched.
"""

from typing import List, Sequence, Tuple

from .models import Assignment, DutySlot, Faculty, Role, ValidationResult


def _same_slot(a: Assignment, b: Assignment) -> bool:
    return a.day == b.day and a.slot == b.slot


def _check_candidate(new_assignment: Assignment,
                     others: Sequence[Assignment],
                     slot: DutySlot,
                     faculty: Sequence[Faculty],
                     already_held_message: str) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    existing = next(
        (a for a in others if _same_slot(a, new_assignment) and a.faculty_id == new_assignment.faculty_id),
        None,
    )
    if existing is not None:
        errors.append(already_held_message.format(role=existing.role.label))

    if new_assignment.role == Role.REGULAR:
        room = new_assignment.room_number
        if not room:
            errors.append('Regular duty needs a room number')
        else:
            taken = next(
                (a for a in others
                 if _same_slot(a, new_assignment) and a.role == Role.REGULAR and a.room_number == room),
                None,
            )
            if taken is not None:
                holder = next((f for f in faculty if f.faculty_id == taken.faculty_id), None)
                name = holder.faculty_name if holder and holder.faculty_name else taken.faculty_id
                errors.append(f'Room {room} is already assigned to {name}')
            if room not in slot.rooms:
                errors.append(f'Room {room} is not available in this slot')

    current = sum(1 for a in others if _same_slot(a, new_assignment) and a.role == new_assignment.role)
    needed = slot.required(new_assignment.role)
    if current >= needed:
        warnings.append(f'Adding this duty will exceed slot capacity '
                        f'({current + 1}/{needed} {new_assignment.role.value})')

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_add(new_assignment: Assignment,
                 all_assignments: Sequence[Assignment],
                 slot: DutySlot,
                 faculty: Sequence[Faculty]) -> ValidationResult:
    """
    Check a new duty against the current schedule.

    Rejects a faculty member who already holds any role in the slot, and for
    regular duty a missing room, a room taken by another regular duty or a
    room outside the slot. Exceeding the role's capacity in the slot is only
    a warning.
    """
    return _check_candidate(new_assignment, all_assignments, slot, faculty,
                            'Faculty is already assigned as {role} in this slot')


def validate_update(old_assignment: Assignment,
                    new_assignment: Assignment,
                    all_assignments: Sequence[Assignment],
                    slot: DutySlot,
                    faculty: Sequence[Faculty]) -> ValidationResult:
    """Same checks as :func:`validate_add`, with ``old_assignment`` left out."""
    others = [a for a in all_assignments
              if not (_same_slot(a, old_assignment) and a.faculty_id == old_assignment.faculty_id)]
    return _check_candidate(new_assignment, others, slot, faculty,
                            'Faculty already has {role} duty in this slot')


def validate_swap(assignment_a: Assignment,
                  assignment_b: Assignment,
                  all_assignments: Sequence[Assignment]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not _same_slot(assignment_a, assignment_b):
        errors.append('Can only swap duties within the same slot')

    duties_a = [a for a in all_assignments
                if _same_slot(a, assignment_a) and a.faculty_id == assignment_a.faculty_id]
    duties_b = [a for a in all_assignments
                if _same_slot(a, assignment_b) and a.faculty_id == assignment_b.faculty_id]
    if len(duties_a) > 1 or len(duties_b) > 1:
        warnings.append('One or both faculty have multiple duties in this slot. '
                        'Only selected duties will be swapped.')

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def add_assignment(new_assignment: Assignment,
                   all_assignments: Sequence[Assignment],
                   slot: DutySlot,
                   faculty: Sequence[Faculty]) -> Tuple[List[Assignment], ValidationResult]:
    result = validate_add(new_assignment, all_assignments, slot, faculty)
    if not result.valid:
        return list(all_assignments), result
    return list(all_assignments) + [new_assignment], result


def update_assignment(old_assignment: Assignment,
                      new_assignment: Assignment,
                      all_assignments: Sequence[Assignment],
                      slot: DutySlot,
                      faculty: Sequence[Faculty]) -> Tuple[List[Assignment], ValidationResult]:
    result = validate_update(old_assignment, new_assignment, all_assignments, slot, faculty)
    if not result.valid:
        return list(all_assignments), result
    if old_assignment not in all_assignments:
        result.valid = False
        result.errors.append('Assignment to update is not part of the schedule')
        return list(all_assignments), result
    updated = list(all_assignments)
    updated[updated.index(old_assignment)] = new_assignment
    return updated, result


def swap_assignments(assignment_a: Assignment,
                     assignment_b: Assignment,
                     all_assignments: Sequence[Assignment]) -> Tuple[List[Assignment], ValidationResult]:
    """
    Exchange the faculty of two duties in the same slot.

    Each duty keeps its role and rooms; only the faculty ids trade places.
    """
    result = validate_swap(assignment_a, assignment_b, all_assignments)
    if result.valid and (assignment_a not in all_assignments or assignment_b not in all_assignments):
        result.valid = False
        result.errors.append('Both duties must be part of the schedule')
    if not result.valid:
        return list(all_assignments), result

    swapped = list(all_assignments)
    index_a, index_b = swapped.index(assignment_a), swapped.index(assignment_b)
    swapped[index_a] = assignment_a.with_faculty(assignment_b.faculty_id)
    swapped[index_b] = assignment_b.with_faculty(assignment_a.faculty_id)
    return swapped, result
