# webstream/portals/applications.py
"""Forms the student submits through the portal, plus the leave register."""
from __future__ import annotations

from typing import Any, Dict, Tuple

from . import register_category
from .base import Category, ScrapeFailure, portal_url
from .tables import GridCategory, TablePolicy
from ..store import now_iso

ACK = ".ui-state-highlight, #lblMessage"


class InvalidSubmission(ScrapeFailure):
    """Required form field missing from the request."""


class FormCategory(Category):
    """Fill a portal form from ``payload`` and submit it. The result is appended to history."""

    SUBMITS = True
    HISTORY = True
    # payload key -> (selector, "fill" | "select")
    FORM: Dict[str, Tuple[str, str]] = {}
    SUBMIT = "#btnSubmit"

    async def fetch(self) -> Dict[str, Any]:
        missing = [k for k in self.FORM if not str(self.payload.get(k) or "").strip()]
        if missing:
            raise InvalidSubmission(f"missing field(s): {', '.join(missing)}")

        await self.open()
        for key, (selector, kind) in self.FORM.items():
            value = str(self.payload[key]).strip()
            if kind == "select":
                await self.page.select_option(selector, label=value)
            else:
                await self.page.fill(selector, value)
        await self.page.click(self.SUBMIT)
        ack = await self.page.wait_for_selector(ACK, timeout=15_000)
        message = (await ack.inner_text()).strip()

        record = {key: str(self.payload[key]).strip() for key in self.FORM}
        record["acknowledgement"] = message
        record["submittedAt"] = now_iso()
        return record


@register_category("grievances")
class Grievance(FormCategory):
    URL = portal_url("academy/StudentsGrievances.jsp")
    FORM = {
        "grievanceType": ("#cmbGrievanceType", "select"),
        "subject": ("#txtSubject", "fill"),
        "description": ("#txtDescription", "fill"),
    }


@register_category("leaveApplication")
class LeaveApplication(FormCategory):
    URL = portal_url("academy/HostelStudentLeaveApplication.jsp")
    FORM = {
        "leaveType": ("#cmbLeaveType", "select"),
        "fromDate": ("#txtFromDate", "fill"),
        "toDate": ("#txtToDate", "fill"),
        "reason": ("#txtReason", "fill"),
    }


@register_category("leaveHistory")
class LeaveHistory(GridCategory):
    URL = portal_url("academy/HostelStudentLeaveApplication.jsp")
    POLICY = TablePolicy(
        fields=("appliedOn", "leaveType", "fromDate", "toDate", "reason", "status"),
        selector="table#tblLeaveHistory",
    )
