"""
Cascading validation: issues raised as a skill is edited, with a
lifecycle and automatic pruning once their cause disappears.
"""

from .changes import Change, detect_changes
from .debounce import Debouncer
from .engine import TRANSITIONS, CascadingValidationEngine
from .issues import Issue, IssueFactory, IssueIdFactory, RelevanceCheck, migrate_legacy_check
from .relevance import is_still_relevant
from .rules import RULES, run_full_validation, run_rules

__all__ = [
    "CascadingValidationEngine",
    "TRANSITIONS",
    # Issues
    "Issue",
    "IssueFactory",
    "IssueIdFactory",
    "RelevanceCheck",
    "migrate_legacy_check",
    # Changes and rules
    "Change",
    "detect_changes",
    "RULES",
    "run_rules",
    "run_full_validation",
    # Relevance
    "is_still_relevant",
    # Persistence
    "Debouncer",
]
