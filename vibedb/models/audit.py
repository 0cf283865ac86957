"""Audit findings for a schema (naming lint + foreign-key audit)."""

from dataclasses import dataclass, field
from enum import Enum


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class AuditIssue:
    """Single audit finding."""
    kind: str = ""
    severity: Severity = Severity.INFO
    message: str = ""


@dataclass
class AuditReport:
    """Combined local audit of a schema."""
    lint_issues: list[AuditIssue] = field(default_factory=list)
    fk_issues: list[AuditIssue] = field(default_factory=list)

    @property
    def issues(self) -> list[AuditIssue]:
        return self.lint_issues + self.fk_issues

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.ERROR)

    @property
    def is_clean(self) -> bool:
        return not self.issues
