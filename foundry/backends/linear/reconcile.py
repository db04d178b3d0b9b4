"""Diff a desired task list against existing Linear sub-issues.

Matching is by stable task key first, then by normalized title. The plan
converges: executing it and planning again against the resulting state
yields an empty plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from ...markdown import task_key
from .task_parser import DesiredTask, parse_task_list

logger = logging.getLogger("foundry.backends.linear.reconcile")


def normalize_task_key(text: str) -> str:
    """``"Refactor: API / HTTP"`` -> ``"refactor-api-http"``; ``"task"`` if nothing is left."""
    return task_key(text)


@dataclass(frozen=True)
class ExistingSubIssue:
    id: str
    title: str
    open: bool
    task_key: Optional[str] = None
    has_foundry_label: bool = True


@dataclass
class ReconciliationPlan:
    to_create: List[DesiredTask] = field(default_factory=list)
    to_close: List[str] = field(default_factory=list)
    to_reopen: List[str] = field(default_factory=list)
    to_keep_label_fix: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_close or self.to_reopen or self.to_keep_label_fix)

    def to_dict(self) -> Dict[str, List]:
        return {
            "to_create": [task.text for task in self.to_create],
            "to_close": list(self.to_close),
            "to_reopen": list(self.to_reopen),
            "to_keep_label_fix": list(self.to_keep_label_fix),
        }


def plan_reconciliation(desired: List[DesiredTask], existing: List[ExistingSubIssue]) -> ReconciliationPlan:
    by_key: Dict[str, List[ExistingSubIssue]] = {}
    by_title: Dict[str, List[ExistingSubIssue]] = {}
    for issue in existing:
        if issue.task_key:
            by_key.setdefault(issue.task_key, []).append(issue)
        else:
            by_title.setdefault(normalize_task_key(issue.title), []).append(issue)

    plan = ReconciliationPlan()
    matched: set = set()
    seen_keys: set = set()

    for task in desired:
        key = normalize_task_key(task.text)
        if key in seen_keys:
            logger.debug(f"Ignoring duplicate task '{task.text}'")
            continue
        seen_keys.add(key)

        issue = _take(by_key.get(key), matched) or _take(by_title.get(key), matched)
        if issue is None:
            if not task.completed:
                plan.to_create.append(task)
            continue

        matched.add(issue.id)
        if not issue.has_foundry_label:
            plan.to_keep_label_fix.append(issue.id)
        if not task.completed and not issue.open:
            plan.to_reopen.append(issue.id)
        elif task.completed and issue.open:
            plan.to_close.append(issue.id)

    for issue in existing:
        if issue.id not in matched and issue.open:
            plan.to_close.append(issue.id)

    return plan


def plan_from_markdown(task_list: str, existing: List[ExistingSubIssue]) -> ReconciliationPlan:
    return plan_reconciliation(parse_task_list(task_list), existing)


def _take(candidates: Optional[List[ExistingSubIssue]], matched: set) -> Optional[ExistingSubIssue]:
    for issue in candidates or []:
        if issue.id not in matched:
            return issue
    return None


# ------------------------------------------------------------------
# Execution
# ------------------------------------------------------------------

class IssueOperations(Protocol):
    def add_label(self, issue_id: str) -> None: ...

    def create(self, task: DesiredTask, key: str) -> str: ...

    def close(self, issue_id: str) -> None: ...

    def reopen(self, issue_id: str) -> None: ...


@dataclass
class ExecutionReport:
    labeled: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    closed: List[str] = field(default_factory=list)
    reopened: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "labeled": list(self.labeled),
            "created": list(self.created),
            "closed": list(self.closed),
            "reopened": list(self.reopened),
        }


def execute_plan(plan: ReconciliationPlan, operations: IssueOperations) -> ExecutionReport:
    """Apply ``plan`` in order: label fixes, creates, closes, reopens."""
    report = ExecutionReport()
    for issue_id in plan.to_keep_label_fix:
        operations.add_label(issue_id)
        report.labeled.append(issue_id)
    for task in plan.to_create:
        report.created.append(operations.create(task, normalize_task_key(task.text)))
    for issue_id in plan.to_close:
        operations.close(issue_id)
        report.closed.append(issue_id)
    for issue_id in plan.to_reopen:
        operations.reopen(issue_id)
        report.reopened.append(issue_id)
    logger.info(
        f"Reconciled tasks: {len(report.labeled)} labeled, {len(report.created)} created, "
        f"{len(report.closed)} closed, {len(report.reopened)} reopened"
    )
    return report
