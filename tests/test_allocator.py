from collections import Counter
from datetime import datetime

import pandas as pd
import pytest

from duty_allocator.allocator import allocate_greedy, check_policy
from duty_allocator.models import DutySlot, Role, UnavailableFaculty, ViolationKind
from duty_allocator.scheduler import allocate

from conftest import make_faculty, make_slot, make_structure


def _ids(assignments, role=None):
    return [a.faculty_id for a in assignments if role is None or a.role == role]


class TestGreedyScenarios:
    def test_two_of_three_get_the_rooms(self, professors, single_slot_structure):
        result = allocate(professors, single_slot_structure)

        assert result.success
        assert len(result.assignments) == 2
        assert sorted(a.room_number for a in result.assignments) == ['R1', 'R2']
        assert len(set(_ids(result.assignments))) == 2
        assert _ids(result.assignments) == ['P1', 'P2']

    def test_unavailable_faculty_is_skipped(self, professors, single_slot_structure):
        date = single_slot_structure.duty_slots[0].date_iso
        result = allocate(professors, single_slot_structure, [UnavailableFaculty('P1', date)])

        assert result.success
        assert 'P1' not in _ids(result.assignments)
        assert _ids(result.assignments) == ['P2', 'P3']

    def test_room_mismatch_fails(self, professors):
        structure = make_structure([make_slot(regular=2, rooms=('R1',))], regular={'Professor': 2})
        result = allocate(professors, structure)

        assert not result.success
        assert [v.kind for v in result.violations if v.kind == ViolationKind.ROOM_MISMATCH] == \
            [ViolationKind.ROOM_MISMATCH]
        assert len(result.assignments) == 1
        assert result.assignments[0].room_number == 'R1'
        assert result.incomplete_slots[0].role == Role.REGULAR
        assert result.incomplete_slots[0].assigned == 1
        assert any('1 rooms provided but 2 regular duties needed' in e for e in result.errors)

    def test_extra_rooms_are_a_mismatch_too(self, professors):
        structure = make_structure([make_slot(regular=1, rooms=('R1', 'R2'))])
        result = allocate(professors, structure)

        assert not result.success
        assert len(result.assignments) == 1
        assert result.violations[0].kind == ViolationKind.ROOM_MISMATCH


class TestGreedyFairness:
    def test_underserved_faculty_go_first(self):
        slots = [make_slot(day=d, regular=1) for d in (0, 2, 4)]
        structure = make_structure(slots, regular={'Professor': 1, 'Lecturer': 2})
        faculty = [make_faculty('P1'), make_faculty('L1', 'Lecturer')]

        result = allocate(faculty, structure)

        # L1 starts at -2, then ties P1 at -1 and wins on id
        assert _ids(result.assignments) == ['L1', 'L1', 'P1']
        assert result.success

    def test_role_counts_follow_targets(self, full_structure, mixed_faculty):
        result = allocate(mixed_faculty, full_structure)
        buffers = Counter(_ids(result.assignments, Role.BUFFER))

        assert result.success
        assert all(fid.startswith('A') for fid in buffers)

    def test_role_order_within_slot(self):
        structure = make_structure([make_slot(regular=1, reliever=1, squad=1, buffer=1)])
        faculty = [make_faculty(f'F{n}') for n in range(1, 5)]

        result = allocate(faculty, structure)

        assert [(a.faculty_id, a.role) for a in result.assignments] == [
            ('F1', Role.REGULAR), ('F2', Role.RELIEVER), ('F3', Role.SQUAD), ('F4', Role.BUFFER),
        ]


class TestGreedyInvariants:
    def test_one_duty_per_slot_and_room(self, full_structure, mixed_faculty):
        result = allocate(mixed_faculty, full_structure)

        per_slot = Counter((a.day, a.slot, a.faculty_id) for a in result.assignments)
        assert max(per_slot.values()) == 1
        rooms = Counter((a.day, a.slot, a.room_number) for a in result.assignments if a.role == Role.REGULAR)
        assert max(rooms.values()) == 1
        for assignment in result.assignments:
            duty_slot = full_structure.find_slot(assignment.day, assignment.slot)
            if assignment.role == Role.REGULAR:
                assert assignment.room_number in duty_slot.rooms
            else:
                assert assignment.room_number is None

    def test_no_slot_is_overfilled(self, full_structure, mixed_faculty):
        result = allocate(mixed_faculty, full_structure)
        filled = Counter((a.day, a.slot, a.role) for a in result.assignments)
        for (day, slot, role), count in filled.items():
            assert count <= full_structure.find_slot(day, slot).required(role)

    def test_availability_holds_everywhere(self, full_structure, mixed_faculty):
        unavailable = [UnavailableFaculty('A1', full_structure.duty_slots[0].date_iso),
                       UnavailableFaculty('P1', full_structure.duty_slots[2].date_iso)]
        result = allocate(mixed_faculty, full_structure, unavailable)

        assert all(a.day != 0 for a in result.assignments if a.faculty_id == 'A1')
        assert all(a.day != 1 for a in result.assignments if a.faculty_id == 'P1')

    def test_deterministic(self, full_structure, mixed_faculty):
        first = allocate(mixed_faculty, full_structure)
        second = allocate(list(mixed_faculty), full_structure)
        assert first.assignments == second.assignments
        assert first.warnings == second.warnings

    def test_inputs_untouched(self, full_structure, mixed_faculty):
        roster = list(mixed_faculty)
        allocate(mixed_faculty, full_structure)
        assert mixed_faculty == roster

    def test_reliever_and_squad_cover_rooms(self):
        structure = make_structure([make_slot(regular=4, reliever=2, squad=1)])
        faculty = [make_faculty(f'F{n}') for n in range(1, 8)]

        result = allocate(faculty, structure)
        relievers = [a for a in result.assignments if a.role == Role.RELIEVER]
        squad = [a for a in result.assignments if a.role == Role.SQUAD]

        assert [a.rooms for a in relievers] == [('R1', 'R2'), ('R3', 'R4')]
        assert squad[0].rooms == ('R1', 'R2', 'R3', 'R4')


class TestBackToBack:
    def test_substitute_preferred(self):
        structure = make_structure([make_slot(0, 0, regular=1), make_slot(0, 1, regular=1)],
                                   regular={'Professor': 5, 'Lecturer': 1})
        faculty = [make_faculty('F1'), make_faculty('F2', 'Lecturer')]

        result = allocate(faculty, structure)

        assert _ids(result.assignments) == ['F1', 'F2']
        assert not any(v.kind == ViolationKind.BACK_TO_BACK for v in result.violations)

    def test_warn_places_the_only_candidate(self):
        structure = make_structure([make_slot(0, 0, regular=1), make_slot(0, 1, regular=1)])
        result = allocate([make_faculty('F1')], structure)

        assert result.success
        assert _ids(result.assignments) == ['F1', 'F1']
        kinds = [v.kind for v in result.violations]
        assert kinds == [ViolationKind.BACK_TO_BACK]
        assert any('back-to-back' in w for w in result.warnings)

    def test_error_leaves_duty_unfilled(self):
        structure = make_structure([make_slot(0, 0, regular=1), make_slot(0, 1, regular=1)])
        result = allocate([make_faculty('F1')], structure, back_to_back_policy='error')

        assert not result.success
        assert len(result.assignments) == 1
        assert result.incomplete_slots[0].slot == 1
        assert any('back-to-back' in e for e in result.errors)

    def test_crosses_day_boundary(self):
        structure = make_structure([make_slot(0, 0, regular=1), make_slot(1, 0, regular=1)],
                                   regular={'Professor': 5, 'Lecturer': 1})
        faculty = [make_faculty('F1'), make_faculty('F2', 'Lecturer')]

        result = allocate(faculty, structure)

        assert _ids(result.assignments) == ['F1', 'F2']


class TestQuotaPolicy:
    def _structure(self):
        return make_structure([make_slot(day=0, regular=1), make_slot(day=2, regular=1)],
                              regular={'Professor': 1})

    def test_warn_allows_overrun(self):
        result = allocate([make_faculty('F1')], self._structure())

        assert result.success
        assert len(result.assignments) == 2
        assert 'Faculty F1 exceeds regular quota (2/1)' in result.warnings

    def test_error_caps_at_target(self):
        result = allocate([make_faculty('F1')], self._structure(), quota_policy='error')

        assert not result.success
        assert len(result.assignments) == 1
        assert result.incomplete_slots[0].day == 2

    def test_under_served_warning(self, professors, single_slot_structure):
        result = allocate(professors, single_slot_structure)
        assert 'Faculty P3 assigned 0/2 duties' in result.warnings


class TestShortfalls:
    def test_no_eligible_buffer(self):
        structure = make_structure([make_slot(buffer=1)], eligibility={'Lecturer': False})
        result = allocate([make_faculty('L1', 'Lecturer')], structure)

        assert not result.success
        assert [v.kind for v in result.violations] == [ViolationKind.NO_ELIGIBLE_BUFFER]
        assert result.incomplete_slots[0].needed == 1
        assert result.incomplete_slots[0].assigned == 0

    def test_reliever_and_squad_shortfall(self):
        structure = make_structure([make_slot(regular=1, reliever=1, squad=1)])
        result = allocate([make_faculty('F1')], structure)

        kinds = {v.kind for v in result.violations}
        assert kinds == {ViolationKind.NO_ELIGIBLE_RELIEVER, ViolationKind.NO_ELIGIBLE_SQUAD}
        assert [i.role for i in result.incomplete_slots] == [Role.RELIEVER, Role.SQUAD]

    def test_structural_error_is_reported(self, single_slot_structure):
        result = allocate([], single_slot_structure)

        assert not result.success
        assert result.errors == ['No faculty members available for assignment']
        assert result.assignments == []


class TestPolicies:
    def test_check_policy_rejects_unknown(self):
        with pytest.raises(ValueError):
            check_policy('quota_policy', 'ignore')

    def test_allocate_greedy_rejects_unknown_policy(self, professors, single_slot_structure):
        with pytest.raises(ValueError):
            allocate_greedy(professors, single_slot_structure, [], back_to_back_policy='strict')


class TestInputEdgeCases:
    def test_duplicate_room_is_rejected(self):
        structure = make_structure([make_slot(regular=2, rooms=('R1', 'R1'))])
        result = allocate([make_faculty('F1'), make_faculty('F2')], structure)

        assert not result.success
        assert result.assignments == []
        assert result.errors == ['Day 1 Slot 1: room listed more than once (R1)']

    @pytest.mark.parametrize('slot_date', [datetime(2025, 5, 12, 9, 0), pd.Timestamp('2025-05-12 14:30')])
    def test_datetime_slot_date_still_matches_unavailability(self, slot_date):
        duty_slot = DutySlot(day=0, slot=0, date=slot_date, regular_duties=1, rooms=('R1',))
        structure = make_structure([duty_slot])

        result = allocate([make_faculty('F1'), make_faculty('F2')], structure,
                          [UnavailableFaculty('F1', '2025-05-12')])

        assert duty_slot.date_iso == '2025-05-12'
        assert _ids(result.assignments) == ['F2']
