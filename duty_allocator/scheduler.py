from typing import Any, Dict, List, Optional, Sequence

from .allocator import AllocationOutcome, allocate_greedy, check_policy
from .constraints import validate_structure
from .cp_sat import CpSatDutySolver
from .exceptions import SolverError, StructuralError
from .export import write_schedule_workbook
from .logger import get_logger
from .models import (
    AssignmentResult,
    ExamStructure,
    Faculty,
    ROLE_ORDER,
    UnavailableFaculty,
    Violation,
    ViolationKind,
    slot_label,
)
from .reporting import build_duty_overview, detect_consistency_violations, fairness_summary
from .utils import load_exam_dataset, write_result_json

logger = get_logger(__name__)

STRATEGIES = ('greedy', 'cp-sat')

BLOCKING_KINDS = frozenset({
    ViolationKind.ROOM_MISMATCH,
    ViolationKind.SLOT_UNIQUENESS,
    ViolationKind.BUFFER_LIMIT,
})


class DutyScheduler:
    """
    Assigns invigilation duties to faculty across the slots of an exam.

    This class holds the allocation policies, runs the chosen strategy,
    checks the result for consistency and builds the per-faculty overview.
    """

    def __init__(self,
                 strategy: str = 'greedy',
                 back_to_back_policy: str = 'warn',
                 quota_policy: str = 'warn',
                 weight_shortfall: int = 1000,
                 weight_fairness: int = 10,
                 weight_back_to_back: int = 50,
                 solver_timeout: int = 60):
        """
        Initialize the scheduler with its policies.

        Args:
            strategy: 'greedy' for the single deterministic pass, 'cp-sat' for
                the OR-Tools model
            back_to_back_policy: 'warn' tolerates a back-to-back duty when no
                substitute exists; 'error' refuses it and fails the run
            quota_policy: 'warn' lets faculty exceed role targets; 'error'
                treats targets as hard ceilings
            weight_shortfall: CP-SAT weight per unfilled duty
            weight_fairness: CP-SAT weight per duty of quota deviation
            weight_back_to_back: CP-SAT weight per back-to-back pair
            solver_timeout: CP-SAT time limit in seconds
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {', '.join(STRATEGIES)}, got {strategy!r}")
        self.strategy = strategy
        self.back_to_back_policy = check_policy('back_to_back_policy', back_to_back_policy)
        self.quota_policy = check_policy('quota_policy', quota_policy)
        self.weights = {
            'shortfall': weight_shortfall,
            'fairness': weight_fairness,
            'back_to_back': weight_back_to_back,
        }
        self.solver_timeout = solver_timeout

        # Data storage
        self.faculty: Optional[List[Faculty]] = None
        self.structure: Optional[ExamStructure] = None
        self.unavailability: List[UnavailableFaculty] = []
        self.result: Optional[AssignmentResult] = None

    def load(self,
             faculty: Sequence[Faculty],
             structure: ExamStructure,
             unavailability: Sequence[UnavailableFaculty] = ()) -> None:
        """Store the roster, structure and unavailability for :meth:`schedule`."""
        self.faculty = list(faculty)
        self.structure = structure
        self.unavailability = list(unavailability)
        self.result = None

    def read_dataset_file(self, filename: str) -> None:
        """
        Read faculty, structure and unavailability from a metadata JSON file.

        Args:
            filename: Path to the dataset JSON
        """
        logger.info("Reading exam dataset from %s...", filename)
        faculty, structure, unavailability = load_exam_dataset(filename)
        self.load(faculty, structure, unavailability)
        logger.info("[%d faculty, %d slots, %d unavailability entries]",
                    len(faculty), len(structure.duty_slots), len(unavailability))

    def update_policy(self, **kwargs) -> None:
        """
        Update policies or CP-SAT weights.

        Args:
            **kwargs: strategy, back_to_back_policy, quota_policy,
                solver_timeout, or a weight name (shortfall, fairness,
                back_to_back)
        """
        for key, value in kwargs.items():
            if key in self.weights:
                self.weights[key] = value
            elif key == 'strategy':
                if value not in STRATEGIES:
                    raise ValueError(f"strategy must be one of {', '.join(STRATEGIES)}, got {value!r}")
                self.strategy = value
            elif key in ('back_to_back_policy', 'quota_policy'):
                setattr(self, key, check_policy(key, value))
            elif key == 'solver_timeout':
                self.solver_timeout = value
            else:
                logger.warning("Unknown policy parameter '%s'", key)
                continue
            logger.info("Updated %s to %s", key, value)

    def summarize_duty_info(self) -> Dict[str, Any]:
        """
        Summarize the duty requirements of the loaded data.

        Returns:
            Dictionary containing summary statistics
        """
        if self.structure is None:
            raise ValueError("No exam data loaded. Please call load or read_dataset_file first.")

        per_role = {role.value: sum(s.required(role) for s in self.structure.duty_slots)
                    for role in ROLE_ORDER}
        per_day: Dict[int, List[str]] = {}
        for duty_slot in self.structure.ordered_slots():
            per_day.setdefault(duty_slot.day, []).append(
                f'{duty_slot.date_iso} {duty_slot.time_label}'.strip())

        return {
            'total_faculty': len(self.faculty),
            'designations': sorted({f.designation for f in self.faculty}),
            'total_slots': len(self.structure.duty_slots),
            'max_slots_per_day': self.structure.slots,
            'duties_by_role': per_role,
            'total_duties': sum(per_role.values()),
            'unavailable_entries': len(self.unavailability),
            'slots_by_day': per_day,
        }

    def print_summary(self) -> None:
        """Print a formatted summary of the duty data."""
        summary = self.summarize_duty_info()

        print("\nEXAM DUTY SUMMARY")
        print("=" * 50)
        print(f"Total Faculty: {summary['total_faculty']} "
              f"({len(summary['designations'])} designations)")
        print(f"Total Slots: {summary['total_slots']}")
        print(f"Max Slots per Day: {summary['max_slots_per_day']}")
        print(f"Total Duties Needed: {summary['total_duties']}")
        for role, count in summary['duties_by_role'].items():
            print(f"  {role:9}: {count}")
        print(f"Unavailability Entries: {summary['unavailable_entries']}")

        print("\nSLOTS BY DAY")
        print("-" * 50)
        for day, slots in summary['slots_by_day'].items():
            print(f"Day {day + 1}: {len(slots)} slot(s)")
            for label in slots:
                print(f"  {label}")

    def schedule(self) -> bool:
        """
        Run allocation on the loaded data.

        Returns:
            True if every duty was filled without a blocking violation
        """
        if self.structure is None:
            raise ValueError("No data loaded. Please call load or read_dataset_file first.")
        self.result = self.allocate(self.faculty, self.structure, self.unavailability)
        return self.result.success

    def allocate(self,
                 faculty: Sequence[Faculty],
                 structure: ExamStructure,
                 unavailability: Sequence[UnavailableFaculty]) -> AssignmentResult:
        """
        Produce a complete schedule from the given inputs.

        Structural problems and solver failures are reported in ``errors``
        with ``success=False`` rather than raised. The result is always a
        fresh structure; the inputs are never modified.
        """
        try:
            warnings = validate_structure(faculty, structure)
        except StructuralError as e:
            for error in e.errors:
                logger.error(error)
            return AssignmentResult(success=False, errors=list(e.errors))

        logger.info("Starting %s allocation...", self.strategy)
        try:
            outcome = self._run_strategy(faculty, structure, unavailability)
        except SolverError as e:
            logger.error(str(e))
            return AssignmentResult(success=False, errors=[str(e)], warnings=warnings)

        violations = outcome.violations + detect_consistency_violations(outcome.assignments, structure, faculty)
        blocking = [v for v in violations if self.is_blocking(v)]
        errors = [v.message for v in blocking]
        warnings = warnings + outcome.warnings + [
            f'{slot_label(i.day, i.slot)}: {i.role.value} {i.assigned}/{i.needed} assigned'
            for i in outcome.incomplete_slots
        ] + [v.message for v in violations if not self.is_blocking(v)]

        success = not outcome.incomplete_slots and not blocking
        logger.info("Allocation %s: %d duties, %d violation(s)",
                    "succeeded" if success else "incomplete", len(outcome.assignments), len(violations))

        return AssignmentResult(
            success=success,
            assignments=list(outcome.assignments),
            errors=errors,
            warnings=warnings,
            incomplete_slots=list(outcome.incomplete_slots),
            violations=violations,
            duty_overview=build_duty_overview(outcome.assignments, faculty),
        )

    def is_blocking(self, violation: Violation) -> bool:
        if violation.kind in BLOCKING_KINDS:
            return True
        return violation.kind == ViolationKind.BACK_TO_BACK and self.back_to_back_policy == 'error'

    def print_solution(self) -> None:
        """Print the allocation outcome and the fairness overview."""
        if self.result is None:
            print("No solution available.")
            return

        if self.result.errors and not self.result.assignments:
            print("Allocation failed:")
            for error in self.result.errors:
                print(f"  - {error}")
            return

        print("\nDUTY OVERVIEW")
        print("=" * 80)
        print("Faculty ID   | Designation          | Regular | Reliever | Squad | Buffer | Total")
        print("-" * 80)
        for entry in self.result.duty_overview:
            print(f"{entry.faculty_id:12} | {entry.designation[:20]:20} | {entry.regular:7} | "
                  f"{entry.reliever:8} | {entry.squad:5} | {entry.buffer:6} | {entry.total:5}")

        print("\nFAIRNESS ANALYSIS")
        print("-" * 80)
        for role, stats in fairness_summary(self.result.duty_overview, self.structure).items():
            print(f"{role:9} mean {stats['mean']:5.2f} | std {stats['std']:5.2f} | "
                  f"min {stats['min']:3.0f} | max {stats['max']:3.0f} | "
                  f"quota deviation {stats['quota_deviation']:5.0f}")

        if self.result.incomplete_slots:
            print("\nINCOMPLETE SLOTS")
            for entry in self.result.incomplete_slots:
                print(f"  {slot_label(entry.day, entry.slot)}: {entry.role.value} "
                      f"{entry.assigned}/{entry.needed}")

        if self.result.violations:
            print("\nVIOLATIONS")
            for violation in self.result.violations:
                print(f"  [{violation.kind.value}] {violation.message}")

        print(f"\nAllocation Status: {'SUCCESS' if self.result.success else 'INCOMPLETE'}")
        print(f"Total Duties Assigned: {len(self.result.assignments)}")

    def write_solution_to_file(self, filename: str = 'duty_schedule.xlsx') -> None:
        """
        Write one sheet per slot plus the faculty overview to an Excel file.

        Args:
            filename: Output filename for the schedule
        """
        if self.result is None or not self.result.assignments:
            print("No assignments to write.")
            return
        write_schedule_workbook(filename, self.structure, self.result.assignments, self.faculty)
        print(f"\nSchedule saved to '{filename}'")

    def write_solution_json(self, filename: str = 'duty_schedule.json') -> None:
        if self.result is None:
            print("No solution to write.")
            return
        write_result_json(filename, self.result, self.structure)
        print(f"Result saved to '{filename}'")

    def _run_strategy(self,
                      faculty: Sequence[Faculty],
                      structure: ExamStructure,
                      unavailability: Sequence[UnavailableFaculty]) -> AllocationOutcome:
        if self.strategy == 'cp-sat':
            solver = CpSatDutySolver(
                weight_shortfall=self.weights['shortfall'],
                weight_fairness=self.weights['fairness'],
                weight_back_to_back=self.weights['back_to_back'],
                back_to_back_policy=self.back_to_back_policy,
                quota_policy=self.quota_policy,
                solver_timeout=self.solver_timeout,
            )
            return solver.solve(faculty, structure, unavailability)
        return allocate_greedy(faculty, structure, unavailability,
                               back_to_back_policy=self.back_to_back_policy,
                               quota_policy=self.quota_policy)


def allocate(faculty: Sequence[Faculty],
             structure: ExamStructure,
             unavailability: Sequence[UnavailableFaculty] = (),
             **options) -> AssignmentResult:
    """
    Allocate duties for an exam in one call.

    Args:
        faculty: Roster of faculty members
        structure: Slots, role capacities and designation targets
        unavailability: Dates on which faculty members cannot serve
        **options: Keyword arguments of :class:`DutyScheduler`

    Returns:
        AssignmentResult with assignments, shortfalls, violations and overview
    """
    return DutyScheduler(**options).allocate(faculty, structure, unavailability)
