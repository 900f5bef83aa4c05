# webstream/portals/attendance.py
from __future__ import annotations

from . import register_category
from .base import resource_url
from .tables import GridCategory, TablePolicy
from ..store import OD

SUBJECT_ATTENDANCE_URL = resource_url(7)


@register_category("attendance")
class Attendance(GridCategory):
    """Overall attendance: only the "Total" row of the subject-wise sheet."""

    URL = SUBJECT_ATTENDANCE_URL
    POLICY = TablePolicy(
        fields=("code", "name", "totalHours", "presentHours", "absentHours", "percentage"),
        total_label="Total",
        total_fields=("totalHours", "presentHours", "absentHours", "percentage"),
        keep="total",
    )


@register_category("subjectWiseAttendance")
class SubjectWiseAttendance(GridCategory):
    URL = SUBJECT_ATTENDANCE_URL
    POLICY = TablePolicy(
        fields=("code", "name", "totalHours", "presentHours", "absentHours", "percentage"),
        total_label="Total",
        total_fields=("totalHours", "presentHours", "absentHours", "percentage"),
        keep="rows",
    )


@register_category("hourWiseAttendance")
class HourWiseAttendance(GridCategory):
    """Day-by-hour presence grid. Also mirrored into the OD collection."""

    URL = resource_url(66)
    MIRRORS = (OD,)
    POLICY = TablePolicy(
        fields=("date", "hour1", "hour2", "hour3", "hour4", "hour5", "hour6", "hour7", "hour8"),
        skip_head=2,  # title row + hour-number row
    )
