"""
Exam Duty Allocator Package

Assigns examination-invigilation duties to faculty across a multi-day,
multi-slot exam, respecting role capacities, quotas, unavailability and
room correspondence, and validates manual edits to the resulting schedule.
"""

from .editing import (
    add_assignment,
    swap_assignments,
    update_assignment,
    validate_add,
    validate_swap,
    validate_update,
)
from .models import (
    Assignment,
    AssignmentResult,
    DutySlot,
    ExamStructure,
    Faculty,
    FacultyDutyOverview,
    IncompleteSlot,
    Role,
    UnavailableFaculty,
    ValidationResult,
    Violation,
    ViolationKind,
)
from .reporting import audit_schedule, build_duty_overview
from .scheduler import DutyScheduler, allocate

__version__ = '1.0.0'

__all__ = [
    'DutyScheduler',
    'allocate',
    'audit_schedule',
    'build_duty_overview',
    'validate_add',
    'validate_update',
    'validate_swap',
    'add_assignment',
    'update_assignment',
    'swap_assignments',
    'Assignment',
    'AssignmentResult',
    'DutySlot',
    'ExamStructure',
    'Faculty',
    'FacultyDutyOverview',
    'IncompleteSlot',
    'Role',
    'UnavailableFaculty',
    'ValidationResult',
    'Violation',
    'ViolationKind',
]
