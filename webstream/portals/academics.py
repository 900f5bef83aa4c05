# webstream/portals/academics.py
from __future__ import annotations

from . import register_category
from .base import portal_url, resource_url
from .tables import GridCategory, SheetCategory, LabelValuePolicy, TablePolicy

TIMETABLE_URL = portal_url("academy/frmStudentTimetable.jsp")
GRADES_URL = resource_url(28)
HOURS = tuple(f"hour{i}" for i in range(1, 9))


# ---------------------- TIMETABLE ----------------------
@register_category("timetable")
class Timetable(GridCategory):
    URL = TIMETABLE_URL
    POLICY = TablePolicy(fields=("day",) + HOURS, selector="table", index=0, skip_head=1)


@register_category("courseMap")
class CourseMap(GridCategory):
    """Course code → name/faculty legend printed under the timetable grid."""

    URL = TIMETABLE_URL
    POLICY = TablePolicy(fields=("code", "name", "faculty"), selector="table", index=1, skip_head=1)


@register_category("facultyList")
class FacultyList(GridCategory):
    URL = resource_url(68)
    POLICY = TablePolicy(fields=("code", "name", "faculty", "email"))


@register_category("currentSemCredits")
class CurrentSemCredits(GridCategory):
    URL = resource_url(69)
    POLICY = TablePolicy(
        fields=("code", "name", "credits"),
        total_label="Total Credits",
        total_fields=("credits",),
        keep="both",
    )


# ---------------------- EXAMS ----------------------
@register_category("examSchedule")
class ExamSchedule(GridCategory):
    URL = resource_url(23)
    POLICY = TablePolicy(fields=("code", "name", "date", "session"))


@register_category("semGrades")
class SemGrades(GridCategory):
    URL = GRADES_URL
    POLICY = TablePolicy(fields=("semester", "monthYear", "code", "name", "credit", "grade"))


@register_category("sgpa")
class Sgpa(GridCategory):
    URL = resource_url(29)
    POLICY = TablePolicy(fields=("semester", "sgpa"))


@register_category("cgpa")
class Cgpa(SheetCategory):
    URL = resource_url(29)
    POLICY = LabelValuePolicy(labels={"CGPA": "cgpa"})


@register_category("internalMarks")
class InternalMarks(GridCategory):
    URL = resource_url(22)
    POLICY = TablePolicy(fields=("code", "name", "marks"))


@register_category("ciaWiseInternalMarks")
class CiaWiseInternalMarks(GridCategory):
    URL = resource_url(20)
    POLICY = TablePolicy(fields=("code", "name", "component", "maxMarks", "marks"), skip_head=2)
