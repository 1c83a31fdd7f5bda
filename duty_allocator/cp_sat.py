from typing import Dict, List, Sequence

from ortools.sat.python import cp_model

from .allocator import AllocationOutcome, attach_rooms, check_policy, quota_warnings, shortfalls
from .constraints import DutyLedger, build_unavailability_map, is_unavailable, preceding_slot
from .exceptions import SolverError
from .logger import get_logger
from .models import (
    ExamStructure,
    Faculty,
    Role,
    ROLE_ORDER,
    UnavailableFaculty,
    Violation,
    ViolationKind,
    slot_label,
)

logger = get_logger(__name__)


class CpSatDutySolver:
    """
    Assigns duties with a CP-SAT model instead of the greedy pass.

    Slot uniqueness, availability, buffer eligibility and role capacities
    are hard constraints. The objective first minimises unfilled duties,
    then the deviation of every faculty member's role counts from their
    designation targets, then back-to-back pairs.
    """

    def __init__(self,
                 weight_shortfall: int = 1000,
                 weight_fairness: int = 10,
                 weight_back_to_back: int = 50,
                 back_to_back_policy: str = 'warn',
                 quota_policy: str = 'warn',
                 solver_timeout: int = 60):
        """
        Initialize the solver with objective weights and policies.

        Args:
            weight_shortfall: Weight per unfilled duty
            weight_fairness: Weight per duty of deviation from a role target
            weight_back_to_back: Weight per back-to-back pair
            back_to_back_policy: 'error' forbids back-to-back pairs outright
            quota_policy: 'error' forbids exceeding a role target
            solver_timeout: Time limit in seconds, also used as the deterministic time budget
        """
        self.weights = {
            'shortfall': weight_shortfall,
            'fairness': weight_fairness,
            'back_to_back': weight_back_to_back,
        }
        self.back_to_back_policy = check_policy('back_to_back_policy', back_to_back_policy)
        self.quota_policy = check_policy('quota_policy', quota_policy)
        self.solver_timeout = solver_timeout

        self.model = None
        self.solver = None
        self.decision_vars = {}
        self.auxiliary_vars = {}

    def solve(self,
              faculty: Sequence[Faculty],
              structure: ExamStructure,
              unavailability: Sequence[UnavailableFaculty]) -> AllocationOutcome:
        """
        Build and solve the model, then read the assignments back.

        Raises:
            SolverError: If no feasible assignment is found in time
        """
        self.faculty = sorted(faculty, key=lambda f: f.faculty_id)
        self.structure = structure
        self.slots = structure.ordered_slots()
        self.unavailability_map = build_unavailability_map(unavailability)

        self._initialize_model()
        self._create_decision_variables()
        self._add_constraints()
        self._define_objective()
        status = self._solve_model()

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            raise SolverError(f'CP-SAT found no assignment (status {self.solver.StatusName(status)})')
        return self._extract_solution()

    def _initialize_model(self) -> None:
        self.model = cp_model.CpModel()
        self.decision_vars = {}
        self.auxiliary_vars = {}
        logger.info("CP-SAT model initialized.")

    def _create_decision_variables(self) -> None:
        """x[i, s, r]: faculty i holds role r in slot s; only created where legal."""
        x = {}
        for i, member in enumerate(self.faculty):
            for s, duty_slot in enumerate(self.slots):
                if is_unavailable(member.faculty_id, duty_slot, self.unavailability_map):
                    continue
                for role in ROLE_ORDER:
                    if duty_slot.required(role) <= 0:
                        continue
                    if role == Role.BUFFER and not self.structure.is_buffer_eligible(member.designation):
                        continue
                    x[i, s, role] = self.model.NewBoolVar(f'x_{i}_{s}_{role.value}')
        self.decision_vars['x'] = x

        shortfall = {}
        for s, duty_slot in enumerate(self.slots):
            for role in ROLE_ORDER:
                needed = duty_slot.required(role)
                if needed > 0:
                    shortfall[s, role] = self.model.NewIntVar(0, needed, f'short_{s}_{role.value}')
        self.decision_vars['shortfall'] = shortfall

        slot_index = {(d.day, d.slot): s for s, d in enumerate(self.slots)}
        previous = {}
        for s, duty_slot in enumerate(self.slots):
            key = preceding_slot(self.structure, duty_slot.day, duty_slot.slot)
            if key in slot_index:
                previous[s] = slot_index[key]
        self.auxiliary_vars['previous'] = previous
        logger.info("Created %d assignment variables.", len(x))

    def _holds(self, i: int, s: int) -> list:
        x = self.decision_vars['x']
        return [x[i, s, role] for role in ROLE_ORDER if (i, s, role) in x]

    def _add_constraints(self) -> None:
        self._add_slot_uniqueness_constraints()
        self._add_capacity_constraints()
        self._add_back_to_back_constraints()
        self._add_quota_constraints()

    def _add_slot_uniqueness_constraints(self) -> None:
        """At most one role per faculty member per slot."""
        for i in range(len(self.faculty)):
            for s in range(len(self.slots)):
                held = self._holds(i, s)
                if len(held) > 1:
                    self.model.Add(sum(held) <= 1)

    def _add_capacity_constraints(self) -> None:
        """Filled plus unfilled equals the requirement; regular is capped by the rooms."""
        x = self.decision_vars['x']
        shortfall = self.decision_vars['shortfall']
        for s, duty_slot in enumerate(self.slots):
            for role in ROLE_ORDER:
                needed = duty_slot.required(role)
                if needed <= 0:
                    continue
                filled = [x[i, s, role] for i in range(len(self.faculty)) if (i, s, role) in x]
                capacity = min(needed, len(duty_slot.rooms)) if role == Role.REGULAR else needed
                if not filled:
                    self.model.Add(shortfall[s, role] == needed)
                    continue
                self.model.Add(sum(filled) <= capacity)
                self.model.Add(sum(filled) + shortfall[s, role] == needed)

    def _add_back_to_back_constraints(self) -> None:
        previous = self.auxiliary_vars['previous']
        back_to_back = {}
        for i in range(len(self.faculty)):
            for s, p in previous.items():
                now, before = self._holds(i, s), self._holds(i, p)
                if not now or not before:
                    continue
                if self.back_to_back_policy == 'error':
                    self.model.Add(sum(now) + sum(before) <= 1)
                else:
                    b = self.model.NewBoolVar(f'b2b_{i}_{s}')
                    self.model.Add(b >= sum(now) + sum(before) - 1)
                    back_to_back[i, s] = b
        self.decision_vars['back_to_back'] = back_to_back

    def _add_quota_constraints(self) -> None:
        """Track deviation from each role target; under 'error' the target is a ceiling."""
        x = self.decision_vars['x']
        deviation = []
        for i, member in enumerate(self.faculty):
            for role in ROLE_ORDER:
                held = [x[i, s, role] for s in range(len(self.slots)) if (i, s, role) in x]
                if not held:
                    continue
                target = self.structure.target(member.designation, role)
                if self.quota_policy == 'error':
                    self.model.Add(sum(held) <= target)
                pos_dev = self.model.NewIntVar(0, len(held), f'pos_dev_{i}_{role.value}')
                neg_dev = self.model.NewIntVar(0, max(target, 0), f'neg_dev_{i}_{role.value}')
                self.model.Add(sum(held) - target == pos_dev - neg_dev)
                deviation.extend((pos_dev, neg_dev))
        self.auxiliary_vars['deviation'] = deviation

    def _define_objective(self) -> None:
        shortfall = sum(self.decision_vars['shortfall'].values())
        deviation = sum(self.auxiliary_vars['deviation'])
        back_to_back = sum(self.decision_vars['back_to_back'].values())
        self.model.Minimize(
            self.weights['shortfall'] * shortfall
            + self.weights['fairness'] * deviation
            + self.weights['back_to_back'] * back_to_back
        )

    def _solve_model(self) -> int:
        logger.info("Solving the model...")
        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = float(self.solver_timeout)
        # Deterministic time and a single worker keep repeated runs identical
        solver.parameters.max_deterministic_time = float(self.solver_timeout)
        solver.parameters.num_workers = 1
        solver.parameters.random_seed = 0
        status = solver.Solve(self.model)
        self.solver = solver
        logger.info("Solver status: %s", solver.StatusName(status))
        return status

    def _extract_solution(self) -> AllocationOutcome:
        x = self.decision_vars['x']
        outcome = AllocationOutcome()

        for s, duty_slot in enumerate(self.slots):
            label = slot_label(duty_slot.day, duty_slot.slot)
            if duty_slot.has_room_mismatch():
                outcome.violations.append(Violation(
                    kind=ViolationKind.ROOM_MISMATCH, day=duty_slot.day, slot=duty_slot.slot,
                    role=Role.REGULAR,
                    message=(f'{label}: {len(duty_slot.rooms)} rooms provided but '
                             f'{duty_slot.regular_duties} regular duties needed'),
                ))
            picks: Dict[Role, List[Faculty]] = {}
            for role in ROLE_ORDER:
                picks[role] = [
                    member for i, member in enumerate(self.faculty)
                    if (i, s, role) in x and self.solver.Value(x[i, s, role]) == 1
                ]
            outcome.assignments.extend(attach_rooms(duty_slot, picks))
            incomplete, violations = shortfalls(duty_slot, {r: len(p) for r, p in picks.items()})
            outcome.incomplete_slots.extend(incomplete)
            outcome.violations.extend(violations)

        for (i, s), b in sorted(self.decision_vars['back_to_back'].items()):
            if self.solver.Value(b) == 1:
                duty_slot = self.slots[s]
                faculty_id = self.faculty[i].faculty_id
                role = next((r for r in ROLE_ORDER if (i, s, r) in x and self.solver.Value(x[i, s, r]) == 1), None)
                outcome.violations.append(Violation(
                    kind=ViolationKind.BACK_TO_BACK, day=duty_slot.day, slot=duty_slot.slot,
                    faculty_id=faculty_id, role=role,
                    message=(f'{slot_label(duty_slot.day, duty_slot.slot)}: {faculty_id} '
                             f'serves back-to-back with the previous slot'),
                ))

        ledger = DutyLedger.from_assignments(outcome.assignments)
        outcome.warnings.extend(quota_warnings(self.faculty, self.structure, ledger))
        logger.info("Extracted %d duties (objective %s)",
                    len(outcome.assignments), self.solver.ObjectiveValue())
        return outcome

