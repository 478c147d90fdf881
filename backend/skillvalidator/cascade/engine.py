"""
Cascading Validation Engine.

Keeps the issue set for one skill being edited. On every revision:

1. Relevance sweep: drop issues whose condition no longer holds
   (dismissed issues are kept as the user left them)
2. Change detection against the previous revision
3. Rules raise new issues for each change (duplicate ids suppressed)
4. The issue set is handed to the persistence callback, debounced

Issues leave the set only by user action or by the sweep; the engine
never fixes anything itself.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings
from ..errors import IssueTransitionError
from ..logger import get_logger
from ..models import IssueStatus, Severity
from .changes import detect_changes
from .debounce import Debouncer
from .issues import Clock, Issue, IssueFactory, IssueIdFactory, utcnow
from .relevance import is_still_relevant
from .rules import run_full_validation, run_rules

logger = get_logger(__name__)

IssuesCallback = Callable[[List[Dict[str, Any]]], Any]

DEFAULT_DEBOUNCE_MS = 500

# Allowed status transitions; resolved and dismissed are terminal.
TRANSITIONS = {
    IssueStatus.NEW: {IssueStatus.REVIEWING, IssueStatus.RESOLVED, IssueStatus.DISMISSED},
    IssueStatus.REVIEWING: {IssueStatus.RESOLVED, IssueStatus.DISMISSED},
    IssueStatus.RESOLVED: set(),
    IssueStatus.DISMISSED: set(),
}


class CascadingValidationEngine:
    """
    Incremental validation for a skill under edit.

    Example:
        engine = CascadingValidationEngine(on_issues_change=save_issues)
        engine.load(skill)
        engine.update(edited_skill)
        for issue in engine.blockers:
            print(issue.title)
        engine.close()
    """

    def __init__(
        self,
        on_issues_change: Optional[IssuesCallback] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Clock] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        """
        Initialize the engine.

        Args:
            on_issues_change: Receives the serialized issue set after changes.
            id_factory: Issue id generator; ``IssueIdFactory`` by default.
            clock: Returns the current UTC time.
            debounce_ms: Delay used to coalesce persistence calls.
        """
        self.clock = clock or utcnow
        self.issue_factory = IssueFactory(id_factory or IssueIdFactory(self.clock), self.clock)
        self.on_issues_change = on_issues_change
        self._debouncer = Debouncer(self._persist, debounce_ms / 1000.0)
        self._issues: List[Issue] = []
        self._previous: Optional[Dict[str, Any]] = None
        self._skill_id: Optional[str] = None
        self._loaded = False
        self.last_run_at: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        on_issues_change: Optional[IssuesCallback] = None,
    ) -> "CascadingValidationEngine":
        """Build an engine using the configured persistence delay."""
        return cls(on_issues_change=on_issues_change, debounce_ms=settings.issue_debounce_ms)

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def load(self, skill: Dict[str, Any]) -> None:
        """
        Start tracking a skill, hydrating issues from ``cascading_issues``.

        The first revision only runs the relevance sweep; there is nothing
        to compare it against.

        Persisted entries that cannot be read are skipped and logged.
        """
        self._skill_id = skill.get("id")
        persisted = skill.get("cascading_issues") or []
        self._issues = self._hydrate(persisted)
        skipped = len(persisted) != len(self._issues)
        self._previous = copy.deepcopy(skill)
        self._loaded = True
        logger.debug("Loaded %d persisted issue(s) for skill %s", len(self._issues), self._skill_id)

        if self._sweep(skill) or skipped:
            self._schedule_persist()

    def update(self, skill: Dict[str, Any]) -> List[Issue]:
        """
        Process a new revision of the skill.

        A revision of a different skill (by id) is treated as a fresh load.

        Returns:
            Issues added by this revision.
        """
        if not self._loaded or skill.get("id") != self._skill_id:
            self.load(skill)
            return []

        changed = self._sweep(skill)
        previous, self._previous = self._previous, copy.deepcopy(skill)

        added: List[Issue] = []
        changes = detect_changes(previous or {}, skill)
        if changes:
            for issue in run_rules(changes, skill, self.issue_factory):
                if self._add(issue):
                    added.append(issue)
            self.last_run_at = self.clock()
            logger.debug(
                "Skill %s: %d change(s), %d new issue(s)",
                self._skill_id,
                len(changes),
                len(added),
            )

        if changed or added:
            self._schedule_persist()
        return added

    def validate_all(self, skill: Dict[str, Any]) -> List[Issue]:
        """Run the whole-skill checks and add their issues."""
        added = [i for i in run_full_validation(skill, self.issue_factory) if self._add(i)]
        self.last_run_at = self.clock()
        if added:
            self._schedule_persist()
        return added

    def _hydrate(self, persisted: List[Any]) -> List[Issue]:
        issues = []
        for data in persisted:
            if not isinstance(data, dict) or not data.get("id"):
                continue
            try:
                issues.append(Issue.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping persisted issue %s: %s", data.get("id"), e)
        return issues

    def _sweep(self, skill: Dict[str, Any]) -> bool:
        now = self.clock()
        kept = [
            issue for issue in self._issues
            if issue.status == IssueStatus.DISMISSED or is_still_relevant(issue, skill, now)
        ]
        removed = len(self._issues) - len(kept)
        if removed:
            logger.debug("Relevance sweep removed %d issue(s)", removed)
            self._issues = kept
        return bool(removed)

    def _add(self, issue: Issue) -> bool:
        if any(existing.id == issue.id for existing in self._issues):
            return False
        issue.status = IssueStatus.NEW
        if issue.created_at is None:
            issue.created_at = self.clock()
        self._issues.append(issue)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get(self, issue_id: str) -> Issue:
        """
        Raises:
            KeyError: If no issue has this id.
        """
        for issue in self._issues:
            if issue.id == issue_id:
                return issue
        raise KeyError(issue_id)

    def add_issue(self, issue: Issue) -> bool:
        """Add an issue from outside the rules; False if the id already exists."""
        added = self._add(issue)
        if added:
            self._schedule_persist()
        return added

    def mark_reviewing(self, issue_id: str) -> Issue:
        return self._transition(issue_id, IssueStatus.REVIEWING)

    def resolve(self, issue_id: str) -> Issue:
        return self._transition(issue_id, IssueStatus.RESOLVED)

    def dismiss(self, issue_id: str) -> Issue:
        return self._transition(issue_id, IssueStatus.DISMISSED)

    def _transition(self, issue_id: str, status: IssueStatus) -> Issue:
        issue = self.get(issue_id)
        if status not in TRANSITIONS[issue.status]:
            raise IssueTransitionError(issue_id, issue.status.value, status.value)
        issue.status = status
        if status in (IssueStatus.RESOLVED, IssueStatus.DISMISSED):
            issue.resolved_at = self.clock()
        self._schedule_persist()
        return issue

    def remove(self, issue_id: str) -> None:
        before = len(self._issues)
        self._issues = [i for i in self._issues if i.id != issue_id]
        if len(self._issues) != before:
            self._schedule_persist()

    def clear_all(self) -> None:
        self._issues = []
        self._schedule_persist()

    def clear_resolved(self) -> None:
        """Drop resolved and dismissed issues."""
        self._issues = [i for i in self._issues if i.is_active]
        self._schedule_persist()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def issues(self) -> List[Issue]:
        return list(self._issues)

    @property
    def active_issues(self) -> List[Issue]:
        return [i for i in self._issues if i.is_active]

    @property
    def blockers(self) -> List[Issue]:
        return [i for i in self.active_issues if i.severity == Severity.BLOCKER]

    @property
    def warnings(self) -> List[Issue]:
        return [i for i in self.active_issues if i.severity == Severity.WARNING]

    @property
    def suggestions(self) -> List[Issue]:
        return [i for i in self.active_issues if i.severity == Severity.SUGGESTION]

    @property
    def has_blockers(self) -> bool:
        return bool(self.blockers)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _schedule_persist(self) -> None:
        if self.on_issues_change is None:
            return
        self._debouncer.call([issue.to_dict() for issue in self._issues])

    def _persist(self, issues: List[Dict[str, Any]]) -> None:
        logger.debug("Persisting %d issue(s) for skill %s", len(issues), self._skill_id)
        self.on_issues_change(issues)

    def flush(self) -> None:
        """Deliver any pending persistence call now."""
        self._debouncer.flush()

    def close(self) -> None:
        self.flush()
        self._debouncer.cancel()
