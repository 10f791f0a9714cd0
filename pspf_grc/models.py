"""Core domain models for the PSPF GRC tracker"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set
from datetime import datetime

from .exceptions import ValidationError


class ComplianceStatus(Enum):
    """Compliance status of a single requirement"""
    NOT_SET = "not-set"
    MET = "yes"
    NOT_MET = "no"
    RISK_MANAGED = "partial"
    NOT_APPLICABLE = "na"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value) -> "ComplianceStatus":
        """Accept an enum member, its value, or its name (``"MET"``)."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.NOT_SET
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value).upper().replace("-", "_")]
        except KeyError:
            raise ValidationError(f"Unknown compliance status: {value!r}")


_STATUS_LABELS = {
    ComplianceStatus.NOT_SET: "Not Set",
    ComplianceStatus.MET: "Met",
    ComplianceStatus.NOT_MET: "Not Met",
    ComplianceStatus.RISK_MANAGED: "Risk Managed",
    ComplianceStatus.NOT_APPLICABLE: "N/A",
}


class HealthStatus(Enum):
    """Domain health levels"""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class ProjectStatus(Enum):
    """Project lifecycle status"""
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"


class TaskStatus(Enum):
    """Task progress status"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class RiskRating(Enum):
    """Five-point scale used for risk likelihood and impact"""
    VERY_LOW = "very-low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"


def parse_choice(enum_cls, value):
    """Enum member for a wire value, raising ValidationError for anything else"""
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {enum_cls.__name__} {value!r}; expected one of: {choices}")


class RiskSeverity(Enum):
    """Risk severity derived from likelihood and impact"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class Domain:
    """A fixed top-level grouping of requirements.

    ``requirement_ids`` holds stable ids, kept in lexical order of the
    requirements' current codes.
    """
    id: str
    title: str
    description: str
    requirement_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "requirement_ids": list(self.requirement_ids),
        }


@dataclass
class Requirement:
    """A single policy obligation"""
    code: str
    stable_id: Optional[str]
    domain_id: str
    title: str
    description: str
    tags: Set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "stable_id": self.stable_id,
            "domain_id": self.domain_id,
            "title": self.title,
            "description": self.description,
            "tags": sorted(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Requirement":
        return cls(
            code=data["code"],
            stable_id=data.get("stable_id"),
            domain_id=data["domain_id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            tags=set(data.get("tags") or []),
        )


@dataclass
class ComplianceRecord:
    """User-entered compliance status and evidence for one requirement"""
    requirement_id: str
    status: ComplianceStatus = ComplianceStatus.NOT_SET
    comment: str = ""
    evidence_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "comment": self.comment,
            "evidence_url": self.evidence_url,
        }

    @classmethod
    def from_dict(cls, requirement_id: str, data: dict) -> "ComplianceRecord":
        # legacy records stored the evidence link under "url"
        url = data.get("evidence_url", data.get("url"))
        return cls(
            requirement_id=requirement_id,
            status=ComplianceStatus.parse(data.get("status")),
            comment=data.get("comment") or "",
            evidence_url=url if url else None,
        )


@dataclass
class Tag:
    """A user-defined label attachable to requirements"""
    id: str
    name: str
    color: str
    description: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "description": self.description,
        }


@dataclass
class Project:
    """A body of compliance work"""
    id: str
    name: str
    description: str
    status: ProjectStatus = ProjectStatus.PLANNING
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            description=data.get("description", ""),
            status=ProjectStatus(data.get("status") or "planning"),
            created_at=_parse_datetime(data.get("created_at", data.get("createdAt"))),
        )


@dataclass
class Task:
    """A unit of work belonging to a project"""
    id: str
    project_id: str
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    assignee: str = ""
    due_date: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def mark_complete(self):
        """Mark task as completed"""
        self.status = TaskStatus.COMPLETED
        self.completed_at = datetime.now()

    def mark_incomplete(self):
        """Return task to in-progress"""
        self.status = TaskStatus.IN_PROGRESS
        self.completed_at = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "assignee": self.assignee,
            "due_date": self.due_date,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        completed = data.get("completed_at", data.get("completedAt"))
        return cls(
            id=str(data["id"]),
            project_id=str(data.get("project_id", data.get("projectId"))),
            name=data.get("name", ""),
            description=data.get("description", ""),
            status=TaskStatus(data.get("status") or "pending"),
            assignee=data.get("assignee") or "",
            due_date=data.get("due_date", data.get("dueDate")) or None,
            created_at=_parse_datetime(data.get("created_at", data.get("createdAt"))),
            completed_at=_parse_datetime(completed) if completed else None,
        )


@dataclass
class Risk:
    """A risk raised against a project"""
    id: str
    project_id: str
    name: str
    description: str
    likelihood: RiskRating
    impact: RiskRating
    severity: RiskSeverity
    mitigation: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def assess(self) -> dict:
        """Assess the risk"""
        return {
            "id": self.id,
            "name": self.name,
            "likelihood": self.likelihood.value,
            "impact": self.impact.value,
            "severity": self.severity.value,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "likelihood": self.likelihood.value,
            "impact": self.impact.value,
            "severity": self.severity.value,
            "mitigation": self.mitigation,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Risk":
        return cls(
            id=str(data["id"]),
            project_id=str(data.get("project_id", data.get("projectId"))),
            name=data.get("name", ""),
            description=data.get("description", ""),
            likelihood=RiskRating(data.get("likelihood") or "very-low"),
            impact=RiskRating(data.get("impact") or "very-low"),
            severity=RiskSeverity(data.get("severity") or "low"),
            mitigation=data.get("mitigation") or "",
            created_at=_parse_datetime(data.get("created_at", data.get("createdAt"))),
        )


@dataclass
class DomainHealth:
    """Three-level health summary of a domain"""
    domain_id: str
    status: HealthStatus
    met: int
    total: int
    text: str

    def to_dict(self) -> dict:
        return {
            "domain_id": self.domain_id,
            "status": self.status.value,
            "met": self.met,
            "total": self.total,
            "text": self.text,
        }


@dataclass
class EssentialEightControl:
    """One Essential Eight mitigation strategy and its current status"""
    order: int
    code: str
    label: str
    description: str
    status: ComplianceStatus

    def to_dict(self) -> dict:
        return {
            "order": self.order,
            "code": self.code,
            "label": self.label,
            "description": self.description,
            "status": self.status.value,
            "status_text": self.status.label,
        }


@dataclass
class EssentialEightSummary:
    controls: List[EssentialEightControl]
    counts: Dict[ComplianceStatus, int]
    met: int
    total: int
    percentage: int

    def to_dict(self) -> dict:
        return {
            "controls": [control.to_dict() for control in self.controls],
            "counts": {status.value: count for status, count in self.counts.items()},
            "met": self.met,
            "total": self.total,
            "percentage": self.percentage,
        }


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
