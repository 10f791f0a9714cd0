"""Aggregation Engine - derived compliance views.

Everything here is a pure function of the stores passed in and is
recomputed on every call; nothing is cached.
"""

import math
from typing import Dict, List, Sequence

from .catalogue import CatalogueStore
from .compliance import ComplianceLedger, is_considered_complete
from .models import (
    ComplianceStatus, DomainHealth, EssentialEightControl, EssentialEightSummary,
    HealthStatus, TaskStatus
)
from .projects import ProjectBoard

WARNING_THRESHOLD = 0.8
EXPLAINED_COMMENT_MIN_LENGTH = 10

_HEALTH_TEXT = {
    HealthStatus.HEALTHY: "Excellent",
    HealthStatus.WARNING: "Good",
    HealthStatus.CRITICAL: "Needs Attention",
}


def _percentage(part: int, whole: int) -> int:
    # half-up, so 1 of 8 controls reads 13%
    return math.floor(100 * part / whole + 0.5) if whole else 0


def domain_health(catalogue: CatalogueStore, ledger: ComplianceLedger, domain_id: str) -> DomainHealth:
    """Healthy / Warning / Critical summary of one domain.

    Healthy when every requirement is complete. Warning when complete,
    risk-managed and well-explained unmet requirements together reach 80%
    of the domain. An empty domain is Critical with 0/0.
    """
    domain = catalogue.get_domain(domain_id)
    total = len(domain.requirement_ids)
    met = partial = explained = 0
    for stable_id in domain.requirement_ids:
        record = ledger.record_of(stable_id)
        if record is None:
            continue
        if is_considered_complete(record):
            met += 1
        elif record.status == ComplianceStatus.RISK_MANAGED:
            partial += 1
        elif (record.status == ComplianceStatus.NOT_MET
              and len(record.comment.strip()) > EXPLAINED_COMMENT_MIN_LENGTH):
            explained += 1

    if total == 0:
        status = HealthStatus.CRITICAL
    elif met == total:
        status = HealthStatus.HEALTHY
    elif met + partial + explained >= WARNING_THRESHOLD * total:
        status = HealthStatus.WARNING
    else:
        status = HealthStatus.CRITICAL
    return DomainHealth(domain_id=domain_id, status=status, met=met, total=total,
                        text=_HEALTH_TEXT[status])


def overall_compliance_rate(catalogue: CatalogueStore, ledger: ComplianceLedger) -> int:
    """Percentage of all requirements with status Met.

    Only strict Met counts here; Not Applicable does not.
    """
    requirements = catalogue.requirements()
    met = sum(1 for r in requirements if ledger.status_of(r.stable_id) == ComplianceStatus.MET)
    return _percentage(met, len(requirements))


def completed_requirements_count(catalogue: CatalogueStore, ledger: ComplianceLedger) -> int:
    """Number of requirements that are Met or Not Applicable"""
    return sum(
        1 for requirement in catalogue.requirements()
        if is_considered_complete(ledger.record_of(requirement.stable_id))
    )


def domain_progress(catalogue: CatalogueStore, ledger: ComplianceLedger, domain_id: str) -> dict:
    """Strict-Met progress bar figures for a domain"""
    domain = catalogue.get_domain(domain_id)
    total = len(domain.requirement_ids)
    met = sum(1 for stable_id in domain.requirement_ids
              if ledger.status_of(stable_id) == ComplianceStatus.MET)
    return {"domain_id": domain_id, "met": met, "total": total,
            "percentage": _percentage(met, total)}


def essential_eight_summary(catalogue: CatalogueStore, ledger: ComplianceLedger,
                            controls: Sequence[dict]) -> EssentialEightSummary:
    """Status of each Essential Eight control and the fully-met percentage.

    ``controls`` is an ordered list of ``{"code", "label"}`` mappings. A
    control whose requirement is missing from the catalogue counts as Not
    Set.
    """
    items: List[EssentialEightControl] = []
    counts: Dict[ComplianceStatus, int] = {status: 0 for status in ComplianceStatus}
    for order, control in enumerate(controls, start=1):
        requirement = catalogue.find(control["code"])
        if requirement is None:
            status = ComplianceStatus.NOT_SET
            description = control.get("description") or "No description available."
        else:
            status = ledger.status_of(requirement.stable_id)
            description = control.get("description") or requirement.title
        counts[status] += 1
        items.append(EssentialEightControl(order=order, code=control["code"],
                                           label=control.get("label", control["code"]),
                                           description=description, status=status))

    total = len(items)
    met = counts[ComplianceStatus.MET]
    return EssentialEightSummary(controls=items, counts=counts, met=met, total=total,
                                 percentage=_percentage(met, total))


def task_completion_rate(board: ProjectBoard) -> int:
    tasks = board.tasks()
    completed = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
    return _percentage(completed, len(tasks))


def project_counts(board: ProjectBoard, links, project_id: str) -> dict:
    """Tab counts shown for a project"""
    return {
        "tasks": len(board.tasks(project_id)),
        "risks": len(board.risks(project_id)),
        "requirements": len(links.requirements_of(project_id)),
    }


def dashboard_stats(catalogue: CatalogueStore, ledger: ComplianceLedger, board: ProjectBoard) -> dict:
    """Headline figures for the dashboard"""
    tasks = board.tasks()
    return {
        "total_requirements": len(catalogue),
        "total_domains": len(catalogue.domains()),
        "total_projects": len(board.projects()),
        "total_tasks": len(tasks),
        "completed_tasks": sum(1 for task in tasks if task.status == TaskStatus.COMPLETED),
        "total_risks": len(board.risks()),
        "completed_requirements": completed_requirements_count(catalogue, ledger),
        "compliance_rate": overall_compliance_rate(catalogue, ledger),
        "task_completion_rate": task_completion_rate(board),
        "domains": [
            dict(domain_health(catalogue, ledger, domain.id).to_dict(),
                 progress=domain_progress(catalogue, ledger, domain.id)["percentage"])
            for domain in catalogue.domains()
        ],
    }
