"""Local schema audit — naming-convention lint and foreign-key audit.

Runs without any AI collaborator; its findings are the local half of a
schema review.

Reference: DESIGN.md — Schema Audit.
"""

from __future__ import annotations

import re

from vibedb.constants import DEFAULT_NAMING_CONVENTION
from vibedb.models.audit import AuditIssue, AuditReport, Severity
from vibedb.models.schema import FkStatus, Schema

NAMING_PATTERNS: dict[str, re.Pattern] = {
    "snake_case": re.compile(r"^[a-z][a-z0-9_]*$"),
    "camelCase": re.compile(r"^[a-z][a-zA-Z0-9]*$"),
    "PascalCase": re.compile(r"^[A-Z][a-zA-Z0-9]*$"),
}


def lint_schema(
    schema: Schema, convention: str = DEFAULT_NAMING_CONVENTION,
) -> list[AuditIssue]:
    """Warn about table and column names that break ``convention``.

    An unknown convention yields no issues.
    """
    pattern = NAMING_PATTERNS.get(convention)
    if pattern is None:
        return []
    issues = []
    for table in schema.tables:
        if not pattern.match(table.name):
            issues.append(AuditIssue(
                kind="naming",
                severity=Severity.WARNING,
                message=f'Table "{table.name}" should be {convention}',
            ))
        for col in table.columns:
            if not pattern.match(col.name):
                issues.append(AuditIssue(
                    kind="naming",
                    severity=Severity.WARNING,
                    message=f'Column "{col.name}" in {table.name} should be {convention}',
                ))
    return issues


def audit_foreign_keys(schema: Schema) -> list[AuditIssue]:
    """One error per foreign key whose ``fk_status`` is unresolved."""
    issues = []
    for table in schema.tables:
        for col in table.columns:
            if col.is_foreign_key and col.fk_status != FkStatus.RESOLVED:
                issues.append(AuditIssue(
                    kind="fk",
                    severity=Severity.ERROR,
                    message=f"Unresolved FK: {table.name}.{col.name} → {col.linked_table}",
                ))
    return issues


def audit_schema(
    schema: Schema, convention: str = DEFAULT_NAMING_CONVENTION,
) -> AuditReport:
    return AuditReport(
        lint_issues=lint_schema(schema, convention),
        fk_issues=audit_foreign_keys(schema),
    )
