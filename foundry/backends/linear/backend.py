"""Linear backend.

A Foundry project is a Linear project carrying three marker-tagged documents
(vision, tech stack, summary). A spec is a parent issue labeled ``foundry``
whose description opens with a spec marker; its notes live in a project
document and its tasks are sub-issues reconciled against the task list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from ...config import LinearConfig
from ...errors import AlreadyExistsError, InvalidInputError, UpstreamError
from ...foundry_logging import (
    log_operation,
    log_performance,
    log_project_event,
    log_spec_event,
    observability_hooks,
)
from ...models import FileType, Project, Spec, created_at_from_spec_id, feature_from_spec_id
from ...naming import generate_spec_id, validate_feature_name, validate_project_name, validate_spec_id
from ...security import check_content
from ..base import Backend
from . import queries
from .graphql import LinearGraphQLClient
from .markers import (
    humanize_title,
    notes_marker,
    opening_marker,
    opening_project,
    project_marker,
    spec_marker,
    strip_opening_marker,
    task_marker,
    with_marker,
)
from .reconcile import ExistingSubIssue, execute_plan, plan_reconciliation
from .task_parser import DesiredTask, parse_task_list, render_task_list

logger = logging.getLogger("foundry.backends.linear")

FOUNDRY_LABEL = "foundry"
FOUNDRY_LABEL_COLOR = "#4A90E2"
PROJECT_DESCRIPTION_LIMIT = 255
CLOSED_STATE_TYPES = ("completed", "canceled")
REOPEN_STATE_TYPES = ("unstarted", "backlog")

DOCUMENT_TITLES = {
    "vision": "Vision",
    "tech-stack": "Tech Stack",
    "summary": "Summary",
}


def document_title(project: str, document: str) -> str:
    return f"{project} — {DOCUMENT_TITLES[document]}"


def notes_title(feature_name: str) -> str:
    return f"{humanize_title(feature_name)} — Notes"


@dataclass
class _ProjectRecord:
    id: str
    name: str
    created_at: str
    documents: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    notes: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def well_formed(self) -> bool:
        return all(name in self.documents for name in DOCUMENT_TITLES)


@dataclass
class _SpecRecord:
    spec_id: str
    issue: Dict[str, Any]
    children: List[Dict[str, Any]] = field(default_factory=list)


def _nodes(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list((connection or {}).get("nodes") or [])


def _is_open(issue: Dict[str, Any]) -> bool:
    state = issue.get("state") or {}
    return state.get("type") not in CLOSED_STATE_TYPES


def _label_ids(issue: Dict[str, Any]) -> List[str]:
    return [label["id"] for label in _nodes(issue.get("labels"))]


def _has_foundry_label(issue: Dict[str, Any]) -> bool:
    return any(label.get("name") == FOUNDRY_LABEL for label in _nodes(issue.get("labels")))


class LinearBackend(Backend):
    """Store Foundry projects in a Linear workspace."""

    name = "linear"

    def __init__(self, config: LinearConfig, client: Optional[LinearGraphQLClient] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.client = client or LinearGraphQLClient(config, session=session)
        self._team_id: Optional[str] = config.team_id
        self._label_id: Optional[str] = None
        self._states: Optional[List[Dict[str, Any]]] = None

    # ------------------------------------------------------------------
    # GraphQL plumbing
    # ------------------------------------------------------------------

    def _mutate(self, query: str, variables: Dict[str, Any], root: str, recover=None) -> Dict[str, Any]:
        data = self.client.execute(query, variables, recover=recover)
        payload = data.get(root) or {}
        if not payload.get("success"):
            raise UpstreamError(f"Linear mutation {root} did not succeed")
        return payload

    def _paginate(self, query: str, variables: Dict[str, Any], root: str) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        after = None
        while True:
            data = self.client.execute(query, {**variables, "after": after})
            connection = data.get(root) or {}
            nodes.extend(_nodes(connection))
            page = connection.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                return nodes
            after = page.get("endCursor")

    def team_id(self) -> str:
        if self._team_id:
            return self._team_id
        teams = _nodes(self.client.execute(queries.TEAMS).get("teams"))
        for team in teams:
            if (self.config.team_key and team.get("key") == self.config.team_key) or (
                self.config.team_name and team.get("name") == self.config.team_name
            ):
                self._team_id = team["id"]
                return self._team_id
        if len(teams) == 1 and not (self.config.team_key or self.config.team_name):
            self._team_id = teams[0]["id"]
            return self._team_id
        raise InvalidInputError(
            "LINEAR_TEAM_ID",
            "must identify exactly one Linear team",
            "Could not resolve the Linear team",
            next_actions=["Set LINEAR_TEAM_ID, LINEAR_TEAM_KEY or LINEAR_TEAM_NAME"],
        )

    def label_id(self) -> str:
        if self._label_id:
            return self._label_id
        labels = _nodes(self.client.execute(queries.LABELS, {"name": FOUNDRY_LABEL}).get("issueLabels"))
        if labels:
            self._label_id = labels[0]["id"]
        else:
            payload = self._mutate(
                queries.LABEL_CREATE,
                {"input": {"name": FOUNDRY_LABEL, "color": FOUNDRY_LABEL_COLOR, "teamId": self.team_id()}},
                "issueLabelCreate",
            )
            self._label_id = payload["issueLabel"]["id"]
            logger.info(f"Created Linear label '{FOUNDRY_LABEL}'")
        return self._label_id

    def _state_id(self, types: tuple) -> str:
        if self._states is None:
            team = self.client.execute(queries.TEAM_STATES, {"teamId": self.team_id()}).get("team") or {}
            self._states = sorted(_nodes(team.get("states")), key=lambda state: state.get("position", 0))
        for state_type in types:
            for state in self._states:
                if state.get("type") == state_type:
                    return state["id"]
        raise UpstreamError(f"Linear team has no workflow state of type {' or '.join(types)}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _project_records(self) -> List[_ProjectRecord]:
        records = []
        for node in self._paginate(queries.PROJECTS, {}, "projects"):
            record = _ProjectRecord(id=node["id"], name=node["name"], created_at=node.get("createdAt", ""))
            for document in _nodes(node.get("documents")):
                content = document.get("content") or ""
                if opening_project(content) == node["name"]:
                    for key in DOCUMENT_TITLES:
                        if document.get("title") == document_title(node["name"], key):
                            record.documents[key] = document
                    continue
                marker = opening_marker(content)
                if marker is not None and marker.type == "notes":
                    record.notes[marker.spec_id] = document
            records.append(record)
        return records

    def _find_project(self, name: str) -> Optional[_ProjectRecord]:
        for record in self._project_records():
            if record.name == name:
                return record
        return None

    def _require_project(self, name: str) -> _ProjectRecord:
        validate_project_name(name)
        record = self._find_project(name)
        if record is None or not record.well_formed:
            raise self._project_not_found(name)
        return record

    def _specs(self, record: _ProjectRecord) -> Dict[str, _SpecRecord]:
        issues = self._paginate(queries.PROJECT_ISSUES, {"projectId": record.id}, "issues")
        specs: Dict[str, _SpecRecord] = {}
        for issue in issues:
            marker = opening_marker(issue.get("description"))
            if issue.get("parent") is None and marker is not None and marker.type == "spec":
                specs[marker.spec_id] = _SpecRecord(marker.spec_id, issue)
        by_issue_id = {spec.issue["id"]: spec for spec in specs.values()}
        for issue in issues:
            parent = (issue.get("parent") or {}).get("id")
            if parent in by_issue_id:
                by_issue_id[parent].children.append(issue)
        for spec in specs.values():
            spec.children.sort(key=lambda child: (child.get("createdAt") or "", child.get("identifier") or ""))
        return specs

    def _require_spec(self, project: str, spec_id: str):
        record = self._require_project(project)
        validate_spec_id(spec_id)
        spec = self._specs(record).get(spec_id)
        if spec is None:
            raise self._spec_not_found(project, spec_id)
        return record, spec

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @log_performance("linear_create_project")
    def create_project(self, name: str, vision: str, tech_stack: str, summary: str) -> Project:
        validate_project_name(name)
        for field_name, content in (("vision", vision), ("tech_stack", tech_stack), ("summary", summary)):
            check_content(content, field_name)
        if self._find_project(name) is not None:
            raise AlreadyExistsError("project", name)

        with log_operation("linear_create_project", project=name):
            payload = self._mutate(
                queries.PROJECT_CREATE,
                {"input": {
                    "name": name,
                    "description": summary[:PROJECT_DESCRIPTION_LIMIT],
                    "teamIds": [self.team_id()],
                }},
                "projectCreate",
            )
            project_id = payload["project"]["id"]
            for document, content in (("vision", vision), ("tech-stack", tech_stack), ("summary", summary)):
                self._mutate(
                    queries.DOCUMENT_CREATE,
                    {"input": {
                        "projectId": project_id,
                        "title": document_title(name, document),
                        "content": with_marker(project_marker(name), content),
                    }},
                    "documentCreate",
                )

        log_project_event("created", name, backend=self.name)
        return Project(
            name=name,
            vision=vision,
            tech_stack=tech_stack,
            summary=summary,
            created_at=payload["project"].get("createdAt", ""),
            location=f"linear:{name}",
            specs=[],
        )

    def load_project(self, name: str) -> Project:
        record = self._require_project(name)

        def body(document: str) -> str:
            return strip_opening_marker(record.documents[document].get("content"))

        return Project(
            name=name,
            vision=body("vision"),
            tech_stack=body("tech-stack"),
            summary=body("summary"),
            created_at=record.created_at,
            location=f"linear:{name}",
            specs=sorted(self._specs(record)),
        )

    def list_projects(self) -> List[str]:
        return sorted(record.name for record in self._project_records() if record.well_formed)

    @log_performance("linear_delete_project")
    def delete_project(self, name: str, confirm: str) -> None:
        self._check_confirmation(name, confirm)
        record = self._require_project(name)
        self._mutate(queries.PROJECT_DELETE, {"id": record.id}, "projectDelete")
        log_project_event("deleted", name, backend=self.name)

    def update_project_document(self, name: str, document: str, content: str) -> None:
        self._check_document(document)
        check_content(content, document)
        record = self._require_project(name)
        self._mutate(
            queries.DOCUMENT_UPDATE,
            {"id": record.documents[document]["id"], "input": {"content": with_marker(project_marker(name), content)}},
            "documentUpdate",
        )
        if document == "summary":
            self._mutate(
                queries.PROJECT_UPDATE,
                {"id": record.id, "input": {"description": content[:PROJECT_DESCRIPTION_LIMIT]}},
                "projectUpdate",
            )
        log_project_event("document_updated", name, document=document, backend=self.name)

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @log_performance("linear_create_spec")
    def create_spec(
        self,
        project: str,
        feature_name: str,
        spec: str,
        tasks: str,
        notes: str,
        now: Optional[datetime] = None,
    ) -> Spec:
        record = self._require_project(project)
        validate_feature_name(feature_name)
        for field_name, content in (("spec", spec), ("tasks", tasks), ("notes", notes)):
            check_content(content, field_name)

        existing = self._specs(record)
        spec_id = generate_spec_id(feature_name, lambda candidate: candidate in existing, now=now)

        with log_operation("linear_create_spec", project=project, spec_id=spec_id):
            self._mutate(
                queries.DOCUMENT_CREATE,
                {"input": {
                    "projectId": record.id,
                    "title": notes_title(feature_name),
                    "content": with_marker(notes_marker(spec_id), notes),
                }},
                "documentCreate",
            )
            payload = self._mutate(
                queries.ISSUE_CREATE,
                {"input": {
                    "teamId": self.team_id(),
                    "projectId": record.id,
                    "title": humanize_title(feature_name),
                    "description": with_marker(spec_marker(spec_id), spec),
                    "labelIds": [self.label_id()],
                }},
                "issueCreate",
            )
            parent_id = payload["issue"]["id"]
            self._reconcile_tasks(project, spec_id, record.id, parent_id, parse_task_list(tasks), [])

        log_spec_event("created", project, spec_id, backend=self.name)
        return Spec(
            project=project,
            spec_id=spec_id,
            spec=spec,
            tasks=tasks,
            notes=notes,
            created_at=created_at_from_spec_id(spec_id),
            location=f"linear:{project}/{spec_id}",
        )

    def load_spec(self, project: str, spec_id: str) -> Spec:
        record, spec = self._require_spec(project, spec_id)
        notes = record.notes.get(spec_id)
        tasks = [
            DesiredTask(text=child.get("title", ""), completed=not _is_open(child))
            for child in spec.children
        ]
        return Spec(
            project=project,
            spec_id=spec_id,
            spec=strip_opening_marker(spec.issue.get("description")),
            tasks=render_task_list(tasks),
            notes=strip_opening_marker(notes.get("content")) if notes else "",
            created_at=created_at_from_spec_id(spec_id),
            location=f"linear:{project}/{spec_id}",
        )

    def list_specs(self, project: str) -> List[str]:
        return sorted(self._specs(self._require_project(project)))

    @log_performance("linear_delete_spec")
    def delete_spec(self, project: str, spec_id: str) -> None:
        record, spec = self._require_spec(project, spec_id)
        for child in spec.children:
            self._mutate(queries.ISSUE_DELETE, {"id": child["id"]}, "issueDelete")
        self._mutate(queries.ISSUE_DELETE, {"id": spec.issue["id"]}, "issueDelete")
        notes = record.notes.get(spec_id)
        if notes is not None:
            self._mutate(queries.DOCUMENT_DELETE, {"id": notes["id"]}, "documentDelete")
        log_spec_event("deleted", project, spec_id, backend=self.name)

    def update_spec_content(self, project: str, spec_id: str, file_type: FileType, new_content: str) -> None:
        check_content(new_content, file_type.value)
        record, spec = self._require_spec(project, spec_id)

        if file_type is FileType.SPEC:
            self._mutate(
                queries.ISSUE_UPDATE,
                {"id": spec.issue["id"], "input": {"description": with_marker(spec_marker(spec_id), new_content)}},
                "issueUpdate",
            )
        elif file_type is FileType.NOTES:
            content = with_marker(notes_marker(spec_id), new_content)
            notes = record.notes.get(spec_id)
            if notes is None:
                self._mutate(
                    queries.DOCUMENT_CREATE,
                    {"input": {"projectId": record.id, "title": notes_title(feature_from_spec_id(spec_id)), "content": content}},
                    "documentCreate",
                )
            else:
                self._mutate(queries.DOCUMENT_UPDATE, {"id": notes["id"], "input": {"content": content}}, "documentUpdate")
        else:
            existing = [self._existing_sub_issue(spec_id, child) for child in spec.children]
            self._reconcile_tasks(project, spec_id, record.id, spec.issue["id"], parse_task_list(new_content),
                                  existing, labels={child["id"]: _label_ids(child) for child in spec.children})

        log_spec_event("updated", project, spec_id, file_type=file_type.value, backend=self.name)

    # ------------------------------------------------------------------
    # Task reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def _existing_sub_issue(spec_id: str, issue: Dict[str, Any]) -> ExistingSubIssue:
        marker = opening_marker(issue.get("description"))
        key = marker.task_key if marker is not None and marker.type == "task" and marker.spec_id == spec_id else None
        return ExistingSubIssue(
            id=issue["id"],
            title=issue.get("title", ""),
            open=_is_open(issue),
            task_key=key,
            has_foundry_label=_has_foundry_label(issue),
        )

    def _reconcile_tasks(self, project: str, spec_id: str, project_id: str, parent_id: str,
                         desired: List[DesiredTask], existing: List[ExistingSubIssue],
                         labels: Optional[Dict[str, List[str]]] = None):
        plan = plan_reconciliation(desired, existing)
        observability_hooks.log_event("reconcile_planned", project=project, spec_id=spec_id, plan=plan.to_dict())
        if plan.is_empty:
            return None
        return execute_plan(plan, _IssueMutations(self, spec_id, project_id, parent_id, labels or {}))


class _IssueMutations:
    """Linear mutations used by the reconciliation executor."""

    def __init__(self, backend: LinearBackend, spec_id: str, project_id: str, parent_id: str,
                 labels: Dict[str, List[str]]):
        self.backend = backend
        self.spec_id = spec_id
        self.project_id = project_id
        self.parent_id = parent_id
        self.labels = labels

    def _update(self, issue_id: str, values: Dict[str, Any]) -> None:
        self.backend._mutate(queries.ISSUE_UPDATE, {"id": issue_id, "input": values}, "issueUpdate")

    def add_label(self, issue_id: str) -> None:
        label_ids = self.labels.get(issue_id, [])
        self._update(issue_id, {"labelIds": label_ids + [self.backend.label_id()]})

    def find(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the sub-issue already carrying task ``key``, if any."""
        issues = self.backend._paginate(queries.PROJECT_ISSUES, {"projectId": self.project_id}, "issues")
        for issue in issues:
            if (issue.get("parent") or {}).get("id") != self.parent_id:
                continue
            marker = opening_marker(issue.get("description"))
            if marker is not None and marker.type == "task" and marker.spec_id == self.spec_id and marker.task_key == key:
                return issue
        return None

    def create(self, task: DesiredTask, key: str) -> str:
        def recover() -> Optional[Dict[str, Any]]:
            issue = self.find(key)
            if issue is None:
                return None
            logger.info(f"Sub-issue for task '{key}' already exists as {issue['id']}; not creating it again")
            return {"issueCreate": {"success": True, "issue": issue}}

        payload = self.backend._mutate(
            queries.ISSUE_CREATE,
            {"input": {
                "teamId": self.backend.team_id(),
                "projectId": self.project_id,
                "parentId": self.parent_id,
                "title": task.text,
                "description": task_marker(self.spec_id, key),
                "labelIds": [self.backend.label_id()],
            }},
            "issueCreate",
            recover=recover,
        )
        return payload["issue"]["id"]

    def close(self, issue_id: str) -> None:
        self._update(issue_id, {"stateId": self.backend._state_id(("completed",))})

    def reopen(self, issue_id: str) -> None:
        self._update(issue_id, {"stateId": self.backend._state_id(REOPEN_STATE_TYPES)})
