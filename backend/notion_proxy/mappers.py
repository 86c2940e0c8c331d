"""
Entity mappers between Notion pages and the app's flat JSON records.

`*_from_page` read a page into a record, applying a default for every
absent property. The *_FIELDS tables drive the opposite direction through
props.build_create / props.build_update.
"""

import json
import logging
from typing import Any, Dict, List

from . import props as p
from .props import Field

logger = logging.getLogger(__name__)

PAID_STATUS = "Paid"

PROJECT_FIELDS = [
    Field("name", "Name", "title"),
    Field("status", "Status", "status"),
    Field("customer", "Customer", "text"),
    Field("instrumentType", "Instrument Type", "select"),
    Field("instrumentMake", "Make", "text"),
    Field("instrumentModel", "Model", "text"),
    Field("serialNumber", "Serial Number", "text"),
    Field("complexity", "Complexity", "rating", p.COMPLEXITY_LABELS),
    Field("profitability", "Profitability", "rating", p.PROFITABILITY_LABELS),
    Field("receivedDate", "Received", "date"),
    Field("dueDate", "Due", "date"),
    Field("paidDate", "Paid Date", "date"),
    Field("total", "Total", "number"),
    Field("subtotal", "Subtotal", "number"),
    Field("commission", "Commission", "number"),
    Field("discount", "Discount", "number"),
    Field("tax", "Tax", "number"),
    Field("tip", "Tip", "number"),
    Field("hourlyRate", "Hourly Rate", "number"),
    Field("reliefBefore", "Relief Before", "number"),
    Field("reliefAfter", "Relief After", "number"),
    Field("fretHeightBefore", "Fret Height Before", "text"),
    Field("fretHeightAfter", "Fret Height After", "text"),
    Field("notes", "Notes", "text"),
    Field("actionsPerformed", "Actions Performed", "multi_select"),
]

MILESTONE_FIELDS = [
    Field("name", "Name", "title"),
    Field("status", "Status", "status"),
    Field("estimatedHours", "EstimatedHours", "number"),
    Field("actualHours", "ActualHours", "number"),
    Field("fixedPrice", "FixedPrice", "number"),
    Field("urgent", "Urgent", "checkbox"),
    Field("includeInEstimate", "IncludeInEstimate", "checkbox"),
    Field("workflowGroup", "WorkflowGroup", "text"),
]

PART_FIELDS = [
    Field("name", "Name", "title"),
    Field("quantity", "Quantity", "number"),
    Field("unitPrice", "UnitPrice", "number"),
]

TODO_FIELDS = [
    Field("text", "Name", "title"),
    Field("done", "Done", "checkbox"),
    Field("list", "List", "select"),
]

# Children of a project: Project relation + Order are set by the operations.
PROJECT_RELATION = "Project"
ORDER = "Order"


def project_from_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "name": p.read_title(page, "Name"),
        "status": p.read_status(page, "Status", "On The Bench"),
        "customer": p.read_text(page, "Customer"),
        "instrumentType": p.read_select(page, "Instrument Type", ""),
        "instrumentMake": p.read_text(page, "Make"),
        "instrumentModel": p.read_text(page, "Model"),
        "serialNumber": p.read_text(page, "Serial Number"),
        "complexity": p.read_rating(page, "Complexity"),
        "profitability": p.read_rating(page, "Profitability"),
        "receivedDate": p.read_date(page, "Received"),
        "dueDate": p.read_date(page, "Due"),
        "paidDate": p.read_date(page, "Paid Date"),
        "total": p.read_number(page, "Total"),
        "subtotal": p.read_number(page, "Subtotal"),
        "commission": p.read_number(page, "Commission"),
        "discount": p.read_number(page, "Discount"),
        "tax": p.read_number(page, "Tax"),
        "tip": p.read_number(page, "Tip"),
        "hourlyRate": p.read_number(page, "Hourly Rate"),
        "reliefBefore": p.read_number(page, "Relief Before"),
        "reliefAfter": p.read_number(page, "Relief After"),
        "fretHeightBefore": p.read_text(page, "Fret Height Before"),
        "fretHeightAfter": p.read_text(page, "Fret Height After"),
        "notes": p.read_text(page, "Notes"),
        "actionsPerformed": p.read_multi_select(page, "Actions Performed"),
        "progress": p.read_computed_number(page, "Progress"),
        "milestonesCompleted": p.read_computed_number(page, "Milestones Completed"),
        "milestonesTotal": p.read_computed_number(page, "Milestones Total"),
        "totalEstimatedHours": p.read_computed_number(page, "Total Estimated Hours"),
    }


def milestone_from_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "projectId": p.read_relation_id(page, PROJECT_RELATION),
        "name": p.read_title(page, "Name"),
        "order": p.read_number(page, ORDER, 1),
        "status": p.read_status(page, "Status", "Not Started"),
        "estimatedHours": p.read_number(page, "EstimatedHours", 1),
        "actualHours": p.read_number(page, "ActualHours"),
        "fixedPrice": p.read_number(page, "FixedPrice"),
        "urgent": p.read_checkbox(page, "Urgent"),
        "includeInEstimate": p.read_checkbox(page, "IncludeInEstimate", True),
        "workflowGroup": p.read_text(page, "WorkflowGroup"),
    }


def part_from_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "projectId": p.read_relation_id(page, PROJECT_RELATION),
        "name": p.read_title(page, "Name"),
        "quantity": p.read_number(page, "Quantity", 1),
        "unitPrice": p.read_number(page, "UnitPrice", 0),
        "order": p.read_number(page, ORDER, 1),
    }


def decode_workflow_data(text: str) -> Any:
    if not text.strip():
        return []
    try:
        return json.loads(text)
    except ValueError:
        logger.warning("%s:decode_workflow_data - Stored workflow data is not valid JSON", __name__)
        return []


def workflow_from_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "name": p.read_title(page, "Name"),
        "data": decode_workflow_data(p.read_text(page, "Data", "[]")),
    }


def workflow_properties(name: Any = None, data_text: Any = None) -> Dict[str, Any]:
    """Properties for a workflow page; pass only what changes."""
    out: Dict[str, Any] = {}
    if name is not None:
        out["Name"] = p.title(name)
    if data_text is not None:
        out["Data"] = p.rich_text(data_text)
    return out


def todo_from_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "text": p.read_title(page, "Name", ""),
        "done": p.read_checkbox(page, "Done"),
        "list": p.read_select(page, "List"),
        "createdAt": page.get("created_time"),
    }


def child_properties(project_id: str, order: int) -> Dict[str, Any]:
    return {PROJECT_RELATION: p.relation(project_id), ORDER: p.number(order)}


def map_all(fn, pages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [fn(page) for page in pages]
