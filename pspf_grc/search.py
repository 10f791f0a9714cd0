"""Text search across the tracker and requirement filtering"""

from typing import Iterable, List, Optional

from .catalogue import CatalogueStore
from .models import Requirement


def _matches(query: str, *fields) -> bool:
    return any(query in (value or "").lower() for value in fields)


def search(manager, query: str) -> List[dict]:
    """Case-insensitive search over projects, tasks, risks and requirements"""
    query = (query or "").strip().lower()
    if not query:
        return []
    results = []

    for project in manager.board.projects():
        if _matches(query, project.name, project.description):
            results.append({"type": "Project", "id": project.id, "title": project.name,
                            "description": project.description})

    for task in manager.board.tasks():
        if _matches(query, task.name, task.description):
            results.append({"type": "Task", "id": task.id, "title": task.name,
                            "description": task.description, "project_id": task.project_id})

    for risk in manager.board.risks():
        if _matches(query, risk.name, risk.description, risk.mitigation):
            results.append({"type": "Risk", "id": risk.id, "title": risk.name,
                            "description": risk.description, "severity": risk.severity.value,
                            "project_id": risk.project_id})

    catalogue = manager.catalogue
    for requirement in catalogue.requirements():
        if _matches(query, requirement.title, requirement.description, requirement.code):
            domain = catalogue.get_domain(requirement.domain_id)
            results.append({"type": "Requirement", "id": requirement.stable_id,
                            "code": requirement.code, "title": requirement.title,
                            "description": requirement.description,
                            "domain_id": domain.id, "domain": domain.title})
    return results


def filter_requirements(catalogue: CatalogueStore, domain_id: Optional[str] = None,
                        text: Optional[str] = None,
                        tags: Optional[Iterable[str]] = None) -> List[Requirement]:
    """Requirements in a domain, matching text, carrying any of the tags; sorted by code"""
    if domain_id:
        requirements = catalogue.list_by_domain(domain_id)
    else:
        requirements = catalogue.requirements()

    text = (text or "").strip().lower()
    if text:
        requirements = [r for r in requirements
                        if _matches(text, r.code, r.title, r.description)]

    wanted = set(tags or [])
    if wanted:
        requirements = [r for r in requirements if r.tags & wanted]

    return sorted(requirements, key=lambda r: r.code)
