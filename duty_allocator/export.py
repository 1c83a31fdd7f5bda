"""
Spreadsheet exports: one sheet per slot plus a consolidated faculty sheet.
"""

from typing import Dict, List, Sequence

import pandas as pd
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from .models import (
    Assignment,
    DutySlot,
    ExamStructure,
    Faculty,
    Role,
    ROLE_ORDER,
    faculty_sort_key,
)

SLOT_COLUMNS = ['S No', 'Role', 'Room Number', 'Faculty ID', 'Faculty Name', 'Phone Number']
OVERVIEW_COLUMNS = ['S No', 'Faculty ID', 'Faculty Name', 'Designation', 'Phone',
                    'Date', 'Time Slot', 'Role', 'Room Number']
OVERVIEW_SHEET = 'Faculty Overview'
# Rows above the table on each sheet: title, subtitle, blank
HEADER_ROWS = 3


def sheet_name(duty_slot: DutySlot) -> str:
    return f'Day {duty_slot.day + 1} Slot {duty_slot.slot + 1}'


def _room_display(assignment: Assignment) -> str:
    if assignment.role == Role.REGULAR and assignment.room_number:
        return assignment.room_number
    return assignment.role.label


def slot_export_frame(duty_slot: DutySlot,
                      assignments: Sequence[Assignment],
                      faculty: Sequence[Faculty]) -> pd.DataFrame:
    """
    Rows of a single slot's sheet.

    Regular duties come first in room order, then relievers, squad and
    buffer. Non-regular rows show the role label in place of a room.
    """
    by_id = {member.faculty_id: member for member in faculty}
    room_order = {room: index for index, room in enumerate(duty_slot.rooms)}
    in_slot = [a for a in assignments if a.day == duty_slot.day and a.slot == duty_slot.slot]
    in_slot.sort(key=lambda a: (ROLE_ORDER.index(a.role),
                                room_order.get(a.room_number, len(room_order)),
                                a.faculty_id))

    rows = []
    for index, assignment in enumerate(in_slot, start=1):
        member = by_id.get(assignment.faculty_id)
        rows.append({
            'S No': index,
            'Role': assignment.role.label,
            'Room Number': _room_display(assignment),
            'Faculty ID': assignment.faculty_id,
            'Faculty Name': member.faculty_name if member else '',
            'Phone Number': member.phone_no if member else '',
        })
    return pd.DataFrame(rows, columns=SLOT_COLUMNS)


def overview_export_frame(structure: ExamStructure,
                          assignments: Sequence[Assignment],
                          faculty: Sequence[Faculty]) -> pd.DataFrame:
    """
    Consolidated duty datesheet, one row per duty and faculty in roster order.

    Faculty without any duty still get a single row with the duty columns
    left blank.
    """
    slots = {(s.day, s.slot): s for s in structure.duty_slots}
    duties: Dict[str, List[Assignment]] = {member.faculty_id: [] for member in faculty}
    for assignment in assignments:
        duties.setdefault(assignment.faculty_id, []).append(assignment)

    by_id = {member.faculty_id: member for member in faculty}
    ordered_ids = sorted(
        duties,
        key=lambda fid: faculty_sort_key(by_id[fid]) if fid in by_id else ('', '', fid),
    )

    rows = []
    for s_no, faculty_id in enumerate(ordered_ids, start=1):
        member = by_id.get(faculty_id)
        base = {
            'S No': s_no,
            'Faculty ID': faculty_id,
            'Faculty Name': member.faculty_name if member else '',
            'Designation': member.designation if member else '',
            'Phone': member.phone_no if member else '',
        }
        held = sorted(duties[faculty_id], key=lambda a: (a.day, a.slot, ROLE_ORDER.index(a.role)))
        if not held:
            rows.append({**base, 'Date': '', 'Time Slot': '', 'Role': '', 'Room Number': ''})
            continue
        for assignment in held:
            duty_slot = slots.get((assignment.day, assignment.slot))
            if assignment.role in (Role.RELIEVER, Role.SQUAD) and assignment.rooms:
                room = ', '.join(assignment.rooms)
            else:
                room = _room_display(assignment)
            rows.append({
                **base,
                'Date': duty_slot.date_iso if duty_slot else '',
                'Time Slot': duty_slot.time_label if duty_slot else '',
                'Role': assignment.role.label,
                'Room Number': room,
            })
    return pd.DataFrame(rows, columns=OVERVIEW_COLUMNS)


def write_schedule_workbook(filename: str,
                            structure: ExamStructure,
                            assignments: Sequence[Assignment],
                            faculty: Sequence[Faculty],
                            title: str = 'EXAMINATION INVIGILATION DUTIES') -> None:
    """
    Write every slot sheet and the faculty overview into one workbook.

    A slot sheet whose duties are not all filled ends with a warning line
    giving the assigned and expected counts.
    """
    with pd.ExcelWriter(filename, engine='openpyxl') as writer:
        for duty_slot in structure.ordered_slots():
            frame = slot_export_frame(duty_slot, assignments, faculty)
            name = sheet_name(duty_slot)
            frame.to_excel(writer, sheet_name=name, index=False, startrow=HEADER_ROWS)
            worksheet = writer.sheets[name]
            _write_heading(worksheet, title, f'{duty_slot.date_iso} {duty_slot.time_label}'.strip())
            if len(frame) < duty_slot.total_duties:
                note_row = HEADER_ROWS + len(frame) + 3
                worksheet.cell(row=note_row, column=1,
                               value='WARNING: This slot has incomplete assignments. '
                                     'Some duties could not be filled.').font = Font(bold=True, color='D32F2F')
                worksheet.cell(row=note_row + 1, column=1,
                               value=f'Assigned: {len(frame)} / {duty_slot.total_duties} duties')
            _fit_columns(worksheet)

        overview = overview_export_frame(structure, assignments, faculty)
        overview.to_excel(writer, sheet_name=OVERVIEW_SHEET, index=False, startrow=HEADER_ROWS)
        worksheet = writer.sheets[OVERVIEW_SHEET]
        _write_heading(worksheet, title, 'CONSOLIDATED FACULTY DUTY DATESHEET')
        _fit_columns(worksheet)


def _write_heading(worksheet, title: str, subtitle: str) -> None:
    for row, text, size in ((1, title, 14), (2, subtitle, 11)):
        cell = worksheet.cell(row=row, column=1, value=text)
        cell.font = Font(bold=True, size=size)
        cell.alignment = Alignment(horizontal='left', vertical='center')
    for cell in worksheet[HEADER_ROWS + 1]:
        cell.font = Font(bold=True)


def _fit_columns(worksheet) -> None:
    widths: Dict[int, int] = {}
    for row in worksheet.iter_rows(min_row=HEADER_ROWS + 1):
        for cell in row:
            if cell.value is not None:
                widths[cell.column] = max(widths.get(cell.column, 0), len(str(cell.value)))
    for column, width in widths.items():
        worksheet.column_dimensions[get_column_letter(column)].width = min(width + 2, 50)
