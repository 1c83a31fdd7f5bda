"""
Utility functions for reading exam data and writing allocation results.
"""

import json
import re
from typing import Any, Dict, List, Tuple, Union

import pandas as pd

from .exceptions import FileContentError, FileReadingError
from .models import (
    AssignmentResult,
    DutySlot,
    ExamStructure,
    Faculty,
    Role,
    UnavailableFaculty,
    faculty_sort_key,
)

# Normalized header -> display name of the roster columns
FACULTY_COLUMNS = {
    'sno': 'S No',
    'facultyname': 'Faculty Name',
    'facultyid': 'Faculty ID',
    'designation': 'Designation',
    'department': 'Department',
    'phoneno': 'Phone No',
}


def _normalize_header(header: Any) -> str:
    return re.sub(r'[^a-z]', '', str(header).lower())


def _cell_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ''
    return str(value).strip()


def validate_faculty_file(filename: str) -> Tuple[bool, List[str]]:
    """
    Validate that the faculty roster has all required columns.

    Args:
        filename: Path to the Excel file

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    try:
        roster_df = pd.read_excel(filename, nrows=0)
        found = {_normalize_header(col) for col in roster_df.columns}
        missing_cols = [name for key, name in FACULTY_COLUMNS.items() if key not in found]
        if missing_cols:
            errors.append(f"Faculty sheet missing columns: {', '.join(missing_cols)}")

    except FileNotFoundError:
        errors.append(f"File not found: {filename}")
    except Exception as e:
        errors.append(f"Error reading file: {str(e)}")

    return len(errors) == 0, errors


def read_faculty_roster(source: Union[str, pd.DataFrame]) -> Tuple[List[Faculty], List[str]]:
    """
    Read the faculty roster from an Excel file or a DataFrame.

    Rows missing an ID, name or designation, and rows repeating an ID, are
    dropped with a warning.

    Returns:
        Tuple of (faculty sorted by designation, name and id, warnings)

    Raises:
        FileContentError: If a required column is missing
    """
    roster_df = source if isinstance(source, pd.DataFrame) else pd.read_excel(source, dtype=str)
    columns = {_normalize_header(col): col for col in roster_df.columns}
    missing = [name for key, name in FACULTY_COLUMNS.items() if key not in columns]
    if missing:
        raise FileContentError(f"Missing required columns: {', '.join(missing)}")

    faculty: List[Faculty] = []
    warnings: List[str] = []
    seen = set()
    for position, (_, row) in enumerate(roster_df.iterrows()):
        values = {key: _cell_text(row[columns[key]]) for key in FACULTY_COLUMNS}
        if not any(values.values()):
            continue
        # Header is row 1 in the spreadsheet
        row_number = position + 2

        if not values['facultyid']:
            warnings.append(f"Row {row_number}: Missing faculty ID")
            continue
        if not values['facultyname']:
            warnings.append(f"Row {row_number}: Missing faculty name")
            continue
        if not values['designation']:
            warnings.append(f"Row {row_number}: Missing designation")
            continue
        if values['facultyid'] in seen:
            warnings.append(f"Row {row_number}: Duplicate faculty ID {values['facultyid']}")
            continue
        seen.add(values['facultyid'])

        try:
            s_no = int(float(values['sno']))
        except (ValueError, OverflowError):
            s_no = 0
        faculty.append(Faculty(
            faculty_id=values['facultyid'],
            faculty_name=values['facultyname'],
            designation=values['designation'],
            department=values['department'],
            phone_no=values['phoneno'],
            s_no=s_no,
        ))

    return sorted(faculty, key=faculty_sort_key), warnings


def read_room_list(source: Union[str, pd.DataFrame]) -> Tuple[List[str], List[str]]:
    """
    Flatten every non-empty cell of a room sheet into a de-duplicated list.

    Returns:
        Tuple of (rooms in reading order, warnings about duplicates)
    """
    rooms_df = source if isinstance(source, pd.DataFrame) else pd.read_excel(source, header=None, dtype=str)
    rooms: List[str] = []
    warnings: List[str] = []
    for row_index, row in enumerate(rooms_df.itertuples(index=False), start=1):
        for col_index, value in enumerate(row, start=1):
            room = _cell_text(value)
            if not room:
                continue
            if room in rooms:
                warnings.append(f"Duplicate room number: {room} at row {row_index}, col {col_index}")
                continue
            rooms.append(room)
    return rooms, warnings


def parse_duty_slot(data: Dict[str, Any]) -> DutySlot:
    return DutySlot(
        day=int(data['day']),
        slot=int(data['slot']),
        date=pd.to_datetime(data['date']).date(),
        start_time=str(data.get('startTime') or ''),
        end_time=str(data.get('endTime') or ''),
        regular_duties=int(data.get('regularDuties') or 0),
        reliever_duties=int(data.get('relieverDuties') or 0),
        squad_duties=int(data.get('squadDuties') or 0),
        buffer_duties=int(data.get('bufferDuties') or 0),
        rooms=tuple(str(room) for room in data.get('rooms') or ()),
        subject_code=data.get('subjectCode'),
    )


def parse_exam_dataset(data: Dict[str, Any]) -> Tuple[List[Faculty], ExamStructure, List[UnavailableFaculty]]:
    """
    Build engine inputs from a metadata JSON object.

    Raises:
        FileContentError: If required keys are missing or malformed
    """
    try:
        slots = data.get('slots', data.get('dutySlots'))
        if slots is None:
            raise KeyError('slots')
        duty_slots = tuple(parse_duty_slot(slot) for slot in slots)
        faculty = [
            Faculty(
                faculty_id=str(entry['facultyId']).strip(),
                faculty_name=str(entry.get('facultyName') or '').strip(),
                designation=str(entry.get('designation') or '').strip(),
                department=str(entry.get('department') or '').strip(),
                phone_no=str(entry.get('phoneNo') or '').strip(),
                s_no=int(entry.get('sNo') or index + 1),
            )
            for index, entry in enumerate(data.get('faculty', []))
        ]
        unavailability = [
            UnavailableFaculty(faculty_id=str(entry['facultyId']),
                               date=pd.to_datetime(entry['date']).date().isoformat())
            for entry in data.get('unavailable', [])
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise FileContentError(f"Malformed exam dataset: {e}") from e

    days = data.get('days') or (max((s.day for s in duty_slots), default=-1) + 1)
    structure = ExamStructure(
        days=int(days),
        duty_slots=duty_slots,
        designation_duty_counts=dict(data.get('designationDutyCounts') or {}),
        designation_reliever_counts=dict(data.get('designationRelieverCounts') or {}),
        designation_squad_counts=dict(data.get('designationSquadCounts') or {}),
        designation_buffer_counts=dict(data.get('designationBufferCounts') or {}),
        designation_buffer_eligibility=data.get('designationBufferEligibility'),
    )
    return faculty, structure, unavailability


def load_exam_dataset(filename: str) -> Tuple[List[Faculty], ExamStructure, List[UnavailableFaculty]]:
    """
    Read faculty, structure and unavailability from a metadata JSON file.

    Raises:
        FileReadingError: If the file cannot be read or is not JSON
        FileContentError: If the JSON does not describe an exam dataset
    """
    try:
        with open(filename, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise FileReadingError(f"Could not read {filename}: {e}") from e
    return parse_exam_dataset(data)


def result_to_dict(result: AssignmentResult, structure: ExamStructure) -> Dict[str, Any]:
    """Serialize an allocation result into its JSON export shape."""
    def assignment_json(assignment):
        duty_slot = structure.find_slot(assignment.day, assignment.slot)
        return {
            'day': assignment.day,
            'slot': assignment.slot,
            'date': duty_slot.date_iso if duty_slot else None,
            'time': (duty_slot.time_label or None) if duty_slot else None,
            'facultyId': assignment.faculty_id,
            'role': assignment.role.value,
            'roomNumber': assignment.room_number if assignment.role == Role.REGULAR else None,
            'rooms': list(assignment.rooms) if assignment.rooms else None,
        }

    return {
        'success': result.success,
        'assignments': [assignment_json(a) for a in result.assignments],
        'errors': list(result.errors),
        'warnings': list(result.warnings),
        'incompleteSlots': [
            {'day': i.day, 'slot': i.slot, 'role': i.role.value, 'needed': i.needed, 'assigned': i.assigned}
            for i in result.incomplete_slots
        ],
        'violations': [
            {
                'id': v.kind.value,
                'day': v.day,
                'slot': v.slot,
                'facultyId': v.faculty_id,
                'role': v.role.value if v.role else None,
                'message': v.message,
            }
            for v in result.violations
        ],
        'dutyOverview': [
            {
                'facultyId': o.faculty_id,
                'facultyName': o.faculty_name,
                'designation': o.designation,
                'regular': o.regular,
                'reliever': o.reliever,
                'squad': o.squad,
                'buffer': o.buffer,
                'total': o.total,
                'coverage': {key: list(rooms) for key, rooms in o.coverage.items()},
            }
            for o in result.duty_overview
        ],
    }


def write_result_json(filename: str, result: AssignmentResult, structure: ExamStructure) -> None:
    with open(filename, 'w', encoding='utf-8') as fh:
        json.dump(result_to_dict(result, structure), fh, indent=2)
