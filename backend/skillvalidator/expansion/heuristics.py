"""
Derivation heuristics.

Pure functions that turn a tool's dotted name, description and inputs into
the identifiers and sample data the expander needs. No randomness and no
I/O: the same input always yields the same output.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional


def slugify(value: str) -> str:
    """Lower-case ``value`` and collapse non-alphanumerics into single dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return slug.strip("-")


def strip_period(text: str) -> str:
    """Remove a single trailing period."""
    return text[:-1] if text.endswith(".") else text


def _singularize(resource: str) -> str:
    if resource.endswith("s") and not resource.endswith("ss"):
        return resource[:-1]
    return resource


def derive_intent_id(tool_name: str) -> str:
    """
    Derive an intent id from a dotted tool name.

    The last two segments are read as ``resource.action``:

        clinic.appointments.create   -> create_appointment
        clinic.doctors.list          -> list_doctors
        clinic.doctors.availability  -> check_doctor_availability

    Names with fewer than three segments return their last segment.
    """
    parts = tool_name.split(".")
    if len(parts) < 3:
        return parts[-1]

    resource, action = parts[-2], parts[-1]
    singular = _singularize(resource)

    if action == "list":
        return f"list_{resource}"
    if action == "availability":
        return f"check_{singular}_availability"
    return f"{action}_{singular}"


def derive_mcp_tool(tool_name: str) -> str:
    """Drop the namespace segment: ``fleet.vehicle.get`` -> ``vehicle.get``."""
    parts = tool_name.split(".")
    return ".".join(parts[1:]) if len(parts) >= 3 else tool_name


def derive_tool_id(tool_name: str) -> str:
    """``clinic.appointments.create`` -> ``tool-appointments-create``."""
    parts = tool_name.split(".")
    relevant = parts[1:] if len(parts) >= 3 else parts
    return "tool-" + "-".join(relevant)


def generate_examples(intent_id: str, description: Optional[str] = None) -> List[str]:
    """Three template utterances for an intent. ``description`` is currently unused."""
    phrase = intent_id.replace("_", " ")
    return [
        f"I want to {phrase}",
        f"Can you help me {phrase}?",
        f"I need to {phrase}",
    ]


def extract_entities(inputs: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Turn required tool inputs into intent entities.

    Entities pulled from free text are never marked required because
    extraction from a message may fail.
    """
    if not inputs:
        return []
    return [
        {
            "name": inp.get("name"),
            "type": inp.get("type") or "string",
            "required": False,
            "extract_from": "message",
        }
        for inp in inputs
        if inp.get("required")
    ]


def _sample_number(name: str) -> Any:
    if "id" in name:
        return 1
    if "amount" in name or "price" in name:
        return 99.99
    if "count" in name or "limit" in name or "max" in name:
        return 10
    if "page" in name:
        return 1
    if "year" in name:
        return 2026
    if "duration" in name or "minutes" in name:
        return 30
    if "age" in name:
        return 35
    return 1


# Ordered (predicate(name, description, type), value) rules; first match wins.
_STRING_RULES = [
    (lambda n, d, t: "date" in n or "yyyy-mm-dd" in d, "2026-03-15"),
    (lambda n, d, t: "time" in n or "hh:mm" in d, "09:00"),
    (lambda n, d, t: "email" in n, "user@example.com"),
    (lambda n, d, t: "phone" in n, "050-1234567"),
    (lambda n, d, t: "name" in n and "patient" in n, "John Smith"),
    (lambda n, d, t: "name" in n and "doctor" in n, "Dr. Sarah Cohen"),
    (lambda n, d, t: "name" in n, "Example Name"),
    (lambda n, d, t: "status" in n, "active"),
    (lambda n, d, t: "type" in n or "category" in n, "standard"),
    (lambda n, d, t: "id" in n and t == "string", "id-001"),
    (lambda n, d, t: "description" in n or "notes" in n or "comment" in n, "Example notes"),
    (lambda n, d, t: "address" in n, "123 Main St"),
    (lambda n, d, t: "url" in n, "https://example.com"),
    (lambda n, d, t: "query" in n or "search" in n or "filter" in n, "search term"),
]


def generate_sample_value(inp: Dict[str, Any]) -> Any:
    """Pick a realistic sample value for a tool input from its name, type and description."""
    name = (inp.get("name") or "").lower()
    input_type = (inp.get("type") or "string").lower()
    desc = (inp.get("description") or "").lower()

    if input_type == "number":
        return _sample_number(name)
    if input_type == "boolean":
        return True

    for matches, value in _STRING_RULES:
        if matches(name, desc, input_type):
            return value
    return "example"


def derive_example_input(inputs: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Sample values for every required input."""
    if not inputs:
        return {}
    return {
        inp["name"]: generate_sample_value(inp)
        for inp in inputs
        if inp.get("required") and inp.get("name")
    }


def _output_description(tool: Dict[str, Any]) -> str:
    output = tool.get("output")
    if isinstance(output, str):
        return output.lower()
    if isinstance(output, dict):
        return (output.get("description") or "").lower()
    return ""


def derive_example_output(tool: Dict[str, Any]) -> Dict[str, Any]:
    """Guess a plausible mock response from the tool's description keywords."""
    desc = (tool.get("description") or "").lower()
    out_desc = _output_description(tool)

    if "array" in out_desc or "list" in desc or "search" in desc:
        return {"results": [{"id": 1, "name": "Example item"}], "total_count": 1}
    if any(kw in desc for kw in ("cancel", "delete", "remove")):
        return {"success": True, "message": "Operation completed successfully."}
    if any(kw in desc for kw in ("create", "book", "add")):
        return {"id": 1, "status": "created", "message": "Created successfully."}
    if any(kw in desc for kw in ("update", "reschedule", "modify")):
        return {"id": 1, "status": "updated", "message": "Updated successfully."}
    return {"success": True, "data": {}}


def derive_goals(tools: Optional[List[Dict[str, Any]]]) -> List[str]:
    """``Enable <description>`` for the first four tools."""
    goals = []
    for tool in (tools or [])[:4]:
        desc = tool.get("description")
        if desc:
            goals.append(f"Enable {strip_period(desc.lower())}")
        else:
            goals.append(f"Enable {tool.get('name', '')}")
    return goals
