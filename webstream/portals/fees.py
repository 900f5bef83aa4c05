# webstream/portals/fees.py
from __future__ import annotations

from . import register_category
from .base import resource_url
from .tables import GridCategory, TablePolicy

DUE_FIELDS = ("institution", "feeDetails", "dueDate", "amount")


@register_category("sastraDue")
class SastraDue(GridCategory):
    URL = resource_url(12)
    POLICY = TablePolicy(fields=DUE_FIELDS, total_label="Total", total_fields=("amount",), keep="both")


@register_category("hostelDue")
class HostelDue(GridCategory):
    URL = resource_url(13)
    POLICY = TablePolicy(fields=DUE_FIELDS, total_label="Total", total_fields=("amount",), keep="both")


@register_category("feeCollections")
class FeeCollections(GridCategory):
    URL = resource_url(14)
    POLICY = TablePolicy(
        fields=("semester", "date", "receiptNo", "description", "amount"),
        skip_head=1,
        skip_tail=1,  # grand-total footer without a label cell
    )
