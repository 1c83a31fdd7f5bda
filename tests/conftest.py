from datetime import date

import pytest

from duty_allocator.models import DutySlot, ExamStructure, Faculty

EXAM_START = date(2025, 5, 12)


def make_slot(day=0, slot=0, regular=0, reliever=0, squad=0, buffer=0, rooms=None, **kwargs):
    """Slot on EXAM_START + day with the given role capacities."""
    if rooms is None:
        rooms = tuple(f'R{n}' for n in range(1, regular + 1))
    return DutySlot(
        day=day,
        slot=slot,
        date=date.fromordinal(EXAM_START.toordinal() + day),
        start_time=kwargs.pop('start_time', '09:00'),
        end_time=kwargs.pop('end_time', '12:00'),
        regular_duties=regular,
        reliever_duties=reliever,
        squad_duties=squad,
        buffer_duties=buffer,
        rooms=tuple(rooms),
        **kwargs,
    )


def make_structure(slots, days=None, regular=None, reliever=None, squad=None, buffer=None,
                   eligibility=None):
    if days is None:
        days = max(s.day for s in slots) + 1
    return ExamStructure(
        days=days,
        duty_slots=tuple(slots),
        designation_duty_counts=regular or {},
        designation_reliever_counts=reliever or {},
        designation_squad_counts=squad or {},
        designation_buffer_counts=buffer or {},
        designation_buffer_eligibility=eligibility,
    )


def make_faculty(faculty_id, designation='Professor', name=None):
    return Faculty(
        faculty_id=faculty_id,
        faculty_name=name or f'Name {faculty_id}',
        designation=designation,
        department='CSE',
        phone_no='9000000000',
    )


@pytest.fixture
def professors():
    return [make_faculty('P1'), make_faculty('P2'), make_faculty('P3')]


@pytest.fixture
def single_slot_structure():
    """One slot needing two regular duties in rooms R1 and R2, quota 2 each."""
    return make_structure([make_slot(regular=2, rooms=('R1', 'R2'))],
                          regular={'Professor': 2})


@pytest.fixture
def full_structure():
    """Two days of two slots each with every role represented."""
    slots = [
        make_slot(day=day, slot=slot, regular=2, reliever=1, squad=1, buffer=1,
                  rooms=(f'D{day}S{slot}-A', f'D{day}S{slot}-B'))
        for day in range(2) for slot in range(2)
    ]
    return make_structure(
        slots,
        regular={'Professor': 2, 'Assistant Professor': 3},
        reliever={'Professor': 1, 'Assistant Professor': 1},
        squad={'Professor': 1, 'Assistant Professor': 1},
        buffer={'Professor': 0, 'Assistant Professor': 2},
        eligibility={'Professor': False, 'Assistant Professor': True},
    )


@pytest.fixture
def mixed_faculty():
    return [make_faculty(f'P{n}') for n in range(1, 5)] + \
        [make_faculty(f'A{n}', designation='Assistant Professor') for n in range(1, 7)]
