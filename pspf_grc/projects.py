"""Project Board - projects, tasks and risks"""

import logging
import uuid
from typing import Dict, List, Optional

from .exceptions import NotFoundError, ValidationError
from .models import (
    Project, ProjectStatus, Risk, RiskRating, RiskSeverity, Task, TaskStatus, parse_choice
)

logger = logging.getLogger(__name__)

_RATING_SCORES = {
    RiskRating.VERY_LOW: 1,
    RiskRating.LOW: 2,
    RiskRating.MEDIUM: 3,
    RiskRating.HIGH: 4,
    RiskRating.VERY_HIGH: 5,
}


def calculate_risk_severity(likelihood: RiskRating, impact: RiskRating) -> RiskSeverity:
    """Severity from the product of two 1-5 ratings"""
    likelihood = parse_choice(RiskRating, likelihood)
    impact = parse_choice(RiskRating, impact)
    score = _RATING_SCORES[likelihood] * _RATING_SCORES[impact]
    if score <= 4:
        return RiskSeverity.LOW
    if score <= 10:
        return RiskSeverity.MEDIUM
    if score <= 16:
        return RiskSeverity.HIGH
    return RiskSeverity.CRITICAL


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class ProjectBoard:
    """Manages projects and the tasks and risks raised against them"""

    def __init__(self):
        self._projects: Dict[str, Project] = {}
        self._tasks: Dict[str, Task] = {}
        self._risks: Dict[str, Risk] = {}
        self._listeners = []

    def subscribe(self, listener):
        """Register a store that must drop references on project deletion"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Projects

    def add_project(self, name: str, description: str = "",
                    status: ProjectStatus = ProjectStatus.PLANNING) -> Project:
        """Add a new project"""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name must not be blank")
        project = Project(id=_new_id(), name=name, description=description or "",
                          status=parse_choice(ProjectStatus, status))
        self._projects[project.id] = project
        logger.info("Created project %s (%s)", project.name, project.id)
        return project

    def update_project(self, project_id: str, name: Optional[str] = None,
                       description: Optional[str] = None,
                       status: Optional[ProjectStatus] = None) -> Project:
        project = self.require_project(project_id)
        if name is not None and not name.strip():
            raise ValidationError("Project name must not be blank")
        new_status = parse_choice(ProjectStatus, status) if status is not None else None
        if name is not None:
            project.name = name.strip()
        if description is not None:
            project.description = description
        if new_status is not None:
            project.status = new_status
        return project

    def delete_project(self, project_id: str, strict: bool = False) -> bool:
        """Delete a project together with its tasks and risks"""
        if project_id not in self._projects:
            if strict:
                raise NotFoundError("Project", project_id)
            return False
        del self._projects[project_id]
        self._tasks = {k: t for k, t in self._tasks.items() if t.project_id != project_id}
        self._risks = {k: r for k, r in self._risks.items() if r.project_id != project_id}
        for listener in self._listeners:
            listener.project_deleted(project_id)
        logger.info("Deleted project %s", project_id)
        return True

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID"""
        return self._projects.get(project_id)

    def require_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def projects(self) -> List[Project]:
        return list(self._projects.values())

    def __contains__(self, project_id) -> bool:
        return project_id in self._projects

    # Tasks

    def add_task(self, project_id: str, name: str, description: str = "",
                 status: TaskStatus = TaskStatus.PENDING, assignee: str = "",
                 due_date: Optional[str] = None) -> Task:
        """Add a task to a project"""
        self.require_project(project_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Task name must not be blank")
        task = Task(id=_new_id(), project_id=project_id, name=name,
                    description=description or "", status=parse_choice(TaskStatus, status),
                    assignee=assignee or "", due_date=due_date or None)
        if task.status == TaskStatus.COMPLETED:
            task.mark_complete()
        self._tasks[task.id] = task
        return task

    def update_task(self, task_id: str, **fields) -> Task:
        task = self.require_task(task_id)
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Task name must not be blank")
        status = parse_choice(TaskStatus, fields["status"]) if fields.get("status") is not None else None
        for key in ("description", "assignee", "due_date"):
            if fields.get(key) is not None:
                setattr(task, key, fields[key])
        if fields.get("name") is not None:
            task.name = fields["name"].strip()
        if status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            task.mark_complete()
        elif status is not None and status != TaskStatus.COMPLETED:
            task.status = status
            task.completed_at = None
        return task

    def mark_task_complete(self, task_id: str) -> Task:
        task = self.require_task(task_id)
        task.mark_complete()
        return task

    def mark_task_incomplete(self, task_id: str) -> Task:
        task = self.require_task(task_id)
        task.mark_incomplete()
        return task

    def delete_task(self, task_id: str, strict: bool = False) -> bool:
        if self._tasks.pop(task_id, None) is None:
            if strict:
                raise NotFoundError("Task", task_id)
            return False
        return True

    def require_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def tasks(self, project_id: Optional[str] = None) -> List[Task]:
        if project_id is None:
            return list(self._tasks.values())
        return [task for task in self._tasks.values() if task.project_id == project_id]

    # Risks

    def add_risk(self, project_id: str, name: str, description: str = "",
                 likelihood: RiskRating = RiskRating.LOW, impact: RiskRating = RiskRating.LOW,
                 mitigation: str = "") -> Risk:
        """Raise a risk against a project; severity is derived"""
        self.require_project(project_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Risk name must not be blank")
        likelihood = parse_choice(RiskRating, likelihood)
        impact = parse_choice(RiskRating, impact)
        risk = Risk(id=_new_id(), project_id=project_id, name=name,
                    description=description or "", likelihood=likelihood, impact=impact,
                    severity=calculate_risk_severity(likelihood, impact),
                    mitigation=mitigation or "")
        self._risks[risk.id] = risk
        return risk

    def update_risk(self, risk_id: str, **fields) -> Risk:
        risk = self.require_risk(risk_id)
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Risk name must not be blank")
        likelihood = parse_choice(RiskRating, fields["likelihood"]) if fields.get("likelihood") else risk.likelihood
        impact = parse_choice(RiskRating, fields["impact"]) if fields.get("impact") else risk.impact
        for key in ("description", "mitigation"):
            if fields.get(key) is not None:
                setattr(risk, key, fields[key])
        if fields.get("name") is not None:
            risk.name = fields["name"].strip()
        risk.likelihood = likelihood
        risk.impact = impact
        risk.severity = calculate_risk_severity(likelihood, impact)
        return risk

    def delete_risk(self, risk_id: str, strict: bool = False) -> bool:
        if self._risks.pop(risk_id, None) is None:
            if strict:
                raise NotFoundError("Risk", risk_id)
            return False
        return True

    def require_risk(self, risk_id: str) -> Risk:
        risk = self._risks.get(risk_id)
        if risk is None:
            raise NotFoundError("Risk", risk_id)
        return risk

    def risks(self, project_id: Optional[str] = None) -> List[Risk]:
        if project_id is None:
            return list(self._risks.values())
        return [risk for risk in self._risks.values() if risk.project_id == project_id]

    def clear(self):
        for project_id in list(self._projects):
            self.delete_project(project_id)

    # Serialization

    def to_dict(self) -> dict:
        return {
            "projects": [project.to_dict() for project in self._projects.values()],
            "tasks": [task.to_dict() for task in self._tasks.values()],
            "risks": [risk.to_dict() for risk in self._risks.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectBoard":
        board = cls()
        for item in data.get("projects") or []:
            project = Project.from_dict(item)
            board._projects[project.id] = project
        for item in data.get("tasks") or []:
            task = Task.from_dict(item)
            if task.project_id not in board._projects:
                logger.warning("Dropping task %s of unknown project %s", task.id, task.project_id)
                continue
            board._tasks[task.id] = task
        for item in data.get("risks") or []:
            risk = Risk.from_dict(item)
            if risk.project_id not in board._projects:
                logger.warning("Dropping risk %s of unknown project %s", risk.id, risk.project_id)
                continue
            board._risks[risk.id] = risk
        return board
