"""Link Registry - associations between projects and requirements"""

import logging
from typing import Dict, Optional, Set

from .catalogue import CatalogueStore
from .exceptions import NotFoundError
from .projects import ProjectBoard

logger = logging.getLogger(__name__)


class LinkRegistry:
    """Many-to-many project/requirement links keyed by requirement stable id.

    Only the forward map (project -> requirements) is stored; the reverse
    lookup scans it.
    """

    def __init__(self, catalogue: CatalogueStore, board: ProjectBoard,
                 links: Optional[Dict[str, Set[str]]] = None):
        self._catalogue = catalogue
        self._board = board
        self._links: Dict[str, Set[str]] = {
            project_id: set(ids) for project_id, ids in (links or {}).items() if ids
        }
        catalogue.subscribe(self)
        board.subscribe(self)

    def link(self, project_id: str, stable_id: str) -> bool:
        """Associate a project with a requirement; False if already linked"""
        if project_id not in self._board:
            raise NotFoundError("Project", project_id)
        if stable_id not in self._catalogue:
            raise NotFoundError("Requirement", stable_id)
        linked = self._links.setdefault(project_id, set())
        if stable_id in linked:
            return False
        linked.add(stable_id)
        logger.debug("Linked project %s to %s", project_id, stable_id)
        return True

    def unlink(self, project_id: str, stable_id: str) -> bool:
        linked = self._links.get(project_id)
        if not linked or stable_id not in linked:
            return False
        linked.discard(stable_id)
        if not linked:
            del self._links[project_id]
        return True

    def requirements_of(self, project_id: str) -> Set[str]:
        return set(self._links.get(project_id, ()))

    def projects_of(self, stable_id: str) -> Set[str]:
        return {project_id for project_id, ids in self._links.items() if stable_id in ids}

    def is_linked(self, project_id: str, stable_id: str) -> bool:
        return stable_id in self._links.get(project_id, ())

    def clear(self):
        self._links.clear()

    def requirement_deleted(self, stable_id: str):
        for project_id in list(self._links):
            self.unlink(project_id, stable_id)

    def project_deleted(self, project_id: str):
        self._links.pop(project_id, None)

    def detach(self):
        self._catalogue.unsubscribe(self)
        self._board.unsubscribe(self)

    def to_dict(self) -> dict:
        return {project_id: sorted(ids) for project_id, ids in self._links.items()}

    @classmethod
    def from_dict(cls, catalogue: CatalogueStore, board: ProjectBoard, data: dict) -> "LinkRegistry":
        """Load links, dropping any that point at missing projects or requirements"""
        links = {}
        for project_id, ids in data.items():
            if project_id not in board:
                logger.warning("Dropping links of unknown project %s", project_id)
                continue
            kept = {stable_id for stable_id in ids if stable_id in catalogue}
            if len(kept) != len(set(ids)):
                logger.warning("Dropping %d dangling link(s) of project %s",
                               len(set(ids)) - len(kept), project_id)
            links[project_id] = kept
        return cls(catalogue, board, links)
