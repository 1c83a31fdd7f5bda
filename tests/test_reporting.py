import pytest

from duty_allocator.models import Assignment, Role, ViolationKind
from duty_allocator.reporting import (
    audit_schedule,
    build_duty_overview,
    detect_consistency_violations,
    fairness_summary,
)

from conftest import make_faculty, make_slot, make_structure


@pytest.fixture
def structure():
    return make_structure(
        [make_slot(0, 0, regular=2, reliever=1, buffer=1), make_slot(0, 1, regular=1)],
        regular={'Professor': 1, 'Lecturer': 1},
        reliever={'Professor': 1},
        buffer={'Lecturer': 1},
        eligibility={'Professor': False},
    )


@pytest.fixture
def roster():
    return [make_faculty('P1'), make_faculty('P2'), make_faculty('L1', 'Lecturer'),
            make_faculty('L2', 'Lecturer')]


class TestConsistency:
    def test_clean_schedule(self, structure, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 0, 'L1', Role.REGULAR, room_number='R2'),
            Assignment(0, 0, 'P2', Role.RELIEVER, rooms=('R1', 'R2')),
            Assignment(0, 0, 'L2', Role.BUFFER),
        ]
        assert detect_consistency_violations(assignments, structure, roster) == []

    def test_two_duties_in_one_slot(self, structure, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 0, 'P1', Role.RELIEVER),
        ]
        violations = detect_consistency_violations(assignments, structure, roster)

        assert [v.kind for v in violations] == [ViolationKind.SLOT_UNIQUENESS]
        assert violations[0].faculty_id == 'P1'
        assert 'REGULAR, RELIEVER' in violations[0].message

    def test_ineligible_buffer(self, structure, roster):
        violations = detect_consistency_violations([Assignment(0, 0, 'P1', Role.BUFFER)], structure, roster)

        assert [v.kind for v in violations] == [ViolationKind.BUFFER_LIMIT]
        assert violations[0].role == Role.BUFFER


class TestAudit:
    def test_room_problems(self, structure, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 0, 'L1', Role.REGULAR, room_number='R1'),
            Assignment(0, 1, 'L2', Role.REGULAR, room_number='R9'),
        ]
        violations = audit_schedule(assignments, structure, roster)
        messages = [v.message for v in violations if v.kind == ViolationKind.ROOM_MISMATCH]

        assert 'Day 1 Slot 1: room R1 assigned to both P1 and L1' in messages
        assert 'Day 1 Slot 2: L2 holds regular duty in unknown room R9' in messages

    def test_back_to_back(self, structure, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 1, 'P1', Role.REGULAR, room_number='R1'),
        ]
        violations = audit_schedule(assignments, structure, roster)

        assert [v.kind for v in violations] == [ViolationKind.BACK_TO_BACK]
        assert violations[0].slot == 1

    def test_sorted_by_slot(self, structure, roster):
        assignments = [
            Assignment(0, 1, 'P2', Role.BUFFER),
            Assignment(0, 0, 'P1', Role.BUFFER),
        ]
        violations = audit_schedule(assignments, structure, roster)
        assert [(v.day, v.slot) for v in violations] == [(0, 0), (0, 1)]


class TestDutyOverview:
    def test_every_faculty_listed(self, roster):
        overview = build_duty_overview([Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1')], roster)

        # Sorted by designation, name, id
        assert [o.faculty_id for o in overview] == ['L1', 'L2', 'P1', 'P2']
        assert [o.total for o in overview] == [0, 0, 1, 0]

    def test_coverage_of_roving_roles(self, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.RELIEVER, rooms=('R1', 'R2')),
            Assignment(0, 1, 'P1', Role.SQUAD, rooms=('R3',)),
        ]
        entry = next(o for o in build_duty_overview(assignments, roster) if o.faculty_id == 'P1')

        assert entry.reliever == 1
        assert entry.squad == 1
        assert entry.coverage == {'d0-s0': ['R1', 'R2'], 'd0-s1': ['R3']}

    def test_unknown_faculty_gets_bare_entry(self, roster):
        overview = build_duty_overview([Assignment(0, 0, 'X9', Role.BUFFER)], roster)
        entry = next(o for o in overview if o.faculty_id == 'X9')

        assert entry.buffer == 1
        assert entry.designation == ''


class TestFairnessSummary:
    def test_spread_and_deviation(self, structure, roster):
        assignments = [
            Assignment(0, 0, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 1, 'P1', Role.REGULAR, room_number='R1'),
            Assignment(0, 0, 'L1', Role.REGULAR, room_number='R2'),
        ]
        summary = fairness_summary(build_duty_overview(assignments, roster), structure)

        regular = summary['regular']
        assert regular['mean'] == pytest.approx(0.75)
        assert regular['min'] == 0
        assert regular['max'] == 2
        # P1 +1, P2 -1, L1 0, L2 -1
        assert regular['quota_deviation'] == 3
        assert set(summary) == {'regular', 'reliever', 'squad', 'buffer', 'total'}

    def test_empty_overview(self, structure):
        assert fairness_summary([], structure) == {}
