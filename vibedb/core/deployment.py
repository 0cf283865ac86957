"""Deployment hand-off — split generated DDL and run it statement by statement.

The core never opens a database connection itself. A ``DeploymentExecutor``
is injected; it receives the target and one statement at a time and
raises on failure. Failures are collected per statement instead of
aborting the run.

Reference: DESIGN.md — Deployment.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

from vibedb.constants import DEPLOY_STATEMENT_PREVIEW

logger = logging.getLogger(__name__)

_STATEMENT_END = re.compile(r";\s*\n")


@dataclass
class DeploymentTarget:
    """Remote database endpoint.

    Attributes:
        url: Base URL, stored without a trailing slash.
        service_key: Credential passed to the executor.
    """
    url: str
    service_key: str

    def __post_init__(self) -> None:
        self.url = self.url.rstrip("/")
        if not self.url or not self.service_key:
            raise ValueError("Deployment target needs a URL and a service key")


class DeploymentExecutor(Protocol):
    def execute(self, target: DeploymentTarget, statement: str) -> None:
        """Run one statement; raise on failure."""
        ...


@dataclass
class StatementResult:
    statement: str
    success: bool
    error: str | None = None

    @property
    def preview(self) -> str:
        if len(self.statement) <= DEPLOY_STATEMENT_PREVIEW:
            return self.statement
        return self.statement[:DEPLOY_STATEMENT_PREVIEW] + "..."


@dataclass
class DeployReport:
    results: list[StatementResult] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.error_count == 0

    @property
    def message(self) -> str:
        if self.error_count:
            return f"Deployed with {self.error_count} error(s)"
        return f"Successfully deployed {len(self.results)} statement(s)"


def split_statements(sql: str) -> list[str]:
    """Split DDL into statements.

    ``--`` comment lines are dropped first, then the text is split on a
    ``;`` that ends a line. Statements are returned without their
    terminating semicolon.
    """
    body = "\n".join(
        line for line in sql.splitlines()
        if not line.lstrip().startswith("--")
    )
    statements = []
    for chunk in _STATEMENT_END.split(body + "\n"):
        chunk = chunk.strip().rstrip(";").strip()
        if chunk:
            statements.append(chunk)
    return statements


def deploy(
    sql: str,
    target: DeploymentTarget,
    executor: DeploymentExecutor,
) -> DeployReport:
    """Run every statement of ``sql`` through ``executor``.

    Returns:
        DeployReport with one StatementResult per statement, in order.
    """
    report = DeployReport()
    for statement in split_statements(sql):
        try:
            executor.execute(target, statement + ";")
        except Exception as exc:
            logger.warning("Statement failed on %s: %s", target.url, exc)
            report.results.append(StatementResult(statement, False, str(exc)))
        else:
            report.results.append(StatementResult(statement, True))
    logger.info("Deploy to %s: %s", target.url, report.message)
    return report
