"""
Cascading validation issues.

An issue is an advisory observation raised when a skill document changes.
It carries a structured relevance check, decided when the issue is
created, that the relevance sweep evaluates against later revisions of
the document.

Issues are persisted on the skill under ``cascading_issues`` using the
camelCase keys the editor UI reads, so ``to_dict``/``from_dict`` speak
that format.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models import Category, IssueStatus, Severity

Clock = Callable[[], datetime]

# Relevance check kinds
TOOL_MISSING_POLICY = "tool_missing_policy"
TOOL_MISSING_MOCKS = "tool_missing_mocks"
INTENT_MISSING_EXAMPLES = "intent_missing_examples"
SCENARIO_PRESENT = "scenario_present"
INTENT_PRESENT = "intent_present"
TOOL_PRESENT = "tool_present"
PROBLEM_MISSING = "problem_missing"
EXPIRES_AFTER = "expires_after"
ALWAYS = "always"

GUARDRAILS_UPDATED_TITLE = "Policy guardrails updated"
GUARDRAILS_UPDATED_TTL_S = 3600.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed); None when unparsable."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class RelevanceCheck:
    """
    Condition under which an issue stays in the active set.

    Attributes:
        kind: One of the check kinds defined in this module.
        target: Name or id of the tool/intent/scenario the check looks at.
        ttl_s: Lifetime in seconds for ``expires_after`` checks.
    """

    kind: str = ALWAYS
    target: Optional[str] = None
    ttl_s: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        if self.target is not None:
            data["target"] = self.target
        if self.ttl_s is not None:
            data["ttl_s"] = self.ttl_s
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelevanceCheck":
        return cls(
            kind=data.get("kind") or ALWAYS,
            target=data.get("target"),
            ttl_s=data.get("ttl_s"),
        )


# Title templates of issues persisted before issues carried a check.
_LEGACY_TITLES = [
    (re.compile(r'^Tool "(.+)" missing policy$'), TOOL_MISSING_POLICY),
    (re.compile(r'^Add mock data for "(.+)"$'), TOOL_MISSING_MOCKS),
    (re.compile(r'^Intent "(.+)" needs examples$'), INTENT_MISSING_EXAMPLES),
    (re.compile(r'^Review intents for "(.+)"$'), SCENARIO_PRESENT),
    (re.compile(r'^Review examples for "(.+)"$'), INTENT_PRESENT),
    (re.compile(r'^Update mocks for "(.+)"$'), TOOL_PRESENT),
]


def migrate_legacy_check(title: str, triggered_by: Dict[str, Any]) -> RelevanceCheck:
    """Derive a relevance check from the title of an issue persisted without one."""
    for pattern, kind in _LEGACY_TITLES:
        match = pattern.match(title)
        if match:
            return RelevanceCheck(kind=kind, target=match.group(1))
    if title == "Scenario may need new tools" and triggered_by.get("id"):
        return RelevanceCheck(kind=SCENARIO_PRESENT, target=str(triggered_by["id"]))
    if title == "Problem statement missing":
        return RelevanceCheck(kind=PROBLEM_MISSING)
    if title == GUARDRAILS_UPDATED_TITLE:
        return RelevanceCheck(kind=EXPIRES_AFTER, ttl_s=GUARDRAILS_UPDATED_TTL_S)
    return RelevanceCheck(kind=ALWAYS)


@dataclass
class Issue:
    """A cascading validation issue."""

    id: str
    severity: Severity
    category: Category
    title: str
    context: str = ""
    chat_prompt: str = ""
    triggered_by: Dict[str, Any] = field(default_factory=dict)
    related_ids: List[str] = field(default_factory=list)
    status: IssueStatus = IssueStatus.NEW
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    check: RelevanceCheck = field(default_factory=RelevanceCheck)

    @property
    def is_active(self) -> bool:
        return self.status in (IssueStatus.NEW, IssueStatus.REVIEWING)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "severity": self.severity.value,
            "category": self.category.value,
            "title": self.title,
            "context": self.context,
            "chatPrompt": self.chat_prompt,
            "triggeredBy": dict(self.triggered_by),
            "relatedIds": list(self.related_ids),
            "status": self.status.value,
            "check": self.check.to_dict(),
        }
        if self.created_at is not None:
            data["createdAt"] = format_timestamp(self.created_at)
        if self.resolved_at is not None:
            data["resolvedAt"] = format_timestamp(self.resolved_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        """
        Rebuild an issue from its persisted form.

        Issues persisted without a ``check`` get one derived from their title.
        """
        triggered_by = dict(data.get("triggeredBy") or {})
        title = data.get("title") or ""
        check_data = data.get("check")
        if isinstance(check_data, dict):
            check = RelevanceCheck.from_dict(check_data)
        else:
            check = migrate_legacy_check(title, triggered_by)

        return cls(
            id=str(data["id"]),
            severity=Severity(data.get("severity") or Severity.INFO.value),
            category=Category(data.get("category") or Category.TOOLS.value),
            title=title,
            context=data.get("context") or "",
            chat_prompt=data.get("chatPrompt") or "",
            triggered_by=triggered_by,
            related_ids=list(data.get("relatedIds") or []),
            status=IssueStatus(data.get("status") or IssueStatus.NEW.value),
            created_at=parse_timestamp(data.get("createdAt")) or parse_timestamp(triggered_by.get("timestamp")),
            resolved_at=parse_timestamp(data.get("resolvedAt")),
            check=check,
        )


class IssueIdFactory:
    """
    Produces issue ids of the form ``val_<epoch_ms>_<n>``.

    Each engine owns its factory, so ids are deterministic under a fixed clock.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utcnow
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        epoch_ms = int(self._clock().timestamp() * 1000)
        return f"val_{epoch_ms}_{next(self._counter)}"


class IssueFactory:
    """Creates new issues with fresh ids and trigger timestamps."""

    def __init__(self, id_factory: Callable[[], str], clock: Clock):
        self.id_factory = id_factory
        self.clock = clock

    def create(
        self,
        severity: Severity,
        category: Category,
        title: str,
        context: str,
        chat_prompt: str,
        trigger_type: str,
        check: RelevanceCheck,
        trigger_id: Optional[str] = None,
        related_ids: Optional[List[str]] = None,
    ) -> Issue:
        now = self.clock()
        triggered_by: Dict[str, Any] = {"type": trigger_type}
        if trigger_id is not None:
            triggered_by["id"] = trigger_id
        triggered_by["timestamp"] = format_timestamp(now)
        return Issue(
            id=self.id_factory(),
            severity=severity,
            category=category,
            title=title,
            context=context,
            chat_prompt=chat_prompt,
            triggered_by=triggered_by,
            related_ids=list(related_ids or []),
            created_at=now,
            check=check,
        )
