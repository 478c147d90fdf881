"""
Error hierarchy for the skill validator.

Structural problems found in a skill document are reported as data
(validation issues), never raised. The exceptions below cover request
shape, configuration and collaborator failures.
"""

from __future__ import annotations

from typing import Iterable


class SkillValidatorError(Exception):
    """Base application error."""


class RequestShapeError(SkillValidatorError):
    """A request body is missing a required field or has the wrong shape."""


class UnknownSectionError(RequestShapeError):
    def __init__(self, section: str, valid_sections: Iterable[str]) -> None:
        self.section = section
        self.valid_sections = list(valid_sections)
        super().__init__(
            f'Unknown section "{section}". '
            f"Valid sections: {', '.join(self.valid_sections)}"
        )


class QualityScoringError(SkillValidatorError):
    """The LLM quality scorer could not produce a result."""


class IssueTransitionError(SkillValidatorError):
    def __init__(self, issue_id: str, current: str, requested: str) -> None:
        self.issue_id = issue_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Issue {issue_id} cannot move from '{current}' to '{requested}'"
        )


class ConfigError(SkillValidatorError):
    """Invalid or unreadable configuration."""
