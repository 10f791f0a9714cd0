"""Catalogue Store - domains and requirements with stable identity"""

import logging
import re
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Set

from .exceptions import (
    DuplicateCodeError, NotFoundError, UnknownDomainError, ValidationError
)
from .models import Domain, Requirement

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z]+-[0-9]+$")


def generate_stable_id() -> str:
    """Mint an opaque requirement identity"""
    return f"req_{uuid.uuid4().hex}"


class CatalogueStore:
    """Owns the fixed domain set and the lifecycle of every requirement.

    Requirements are keyed by ``stable_id``; ``code`` is a renamable display
    attribute resolved through ``_code_index``. Stores that reference
    requirements subscribe with :meth:`subscribe` and are told about
    deletions through ``requirement_deleted(stable_id)`` before
    :meth:`delete_requirement` returns.
    """

    def __init__(self, domains: Iterable[Domain], id_factory: Optional[Callable[[], str]] = None):
        self._domains: Dict[str, Domain] = {}
        for domain in domains:
            self._domains[domain.id] = Domain(domain.id, domain.title, domain.description)
        self._requirements: Dict[str, Requirement] = {}
        self._code_index: Dict[str, str] = {}
        self._issued_ids: Set[str] = set()
        self._unidentified: List[Requirement] = []
        self._listeners = []
        self._id_factory = id_factory or generate_stable_id

    # ------------------------------------------------------------------
    # Listeners

    def subscribe(self, listener):
        """Register a store that must drop references on requirement deletion"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Reads

    def domains(self) -> List[Domain]:
        return list(self._domains.values())

    def has_domain(self, domain_id: str) -> bool:
        return domain_id in self._domains

    def get_domain(self, domain_id: str) -> Domain:
        domain = self._domains.get(domain_id)
        if domain is None:
            raise UnknownDomainError(domain_id)
        return domain

    def requirements(self) -> List[Requirement]:
        """All live requirements, in domain order then code order"""
        return [
            self._requirements[stable_id]
            for domain in self._domains.values()
            for stable_id in domain.requirement_ids
        ]

    def get(self, stable_id: str) -> Optional[Requirement]:
        return self._requirements.get(stable_id)

    def require(self, stable_id: str) -> Requirement:
        requirement = self._requirements.get(stable_id)
        if requirement is None:
            raise NotFoundError("Requirement", stable_id)
        return requirement

    def find(self, code: str) -> Optional[Requirement]:
        """Look up a live requirement by its code"""
        stable_id = self._code_index.get(code)
        if stable_id is None:
            return None
        return self._requirements[stable_id]

    def list_by_domain(self, domain_id: str) -> List[Requirement]:
        domain = self.get_domain(domain_id)
        return [self._requirements[stable_id] for stable_id in domain.requirement_ids]

    def __contains__(self, stable_id) -> bool:
        return stable_id in self._requirements

    def __len__(self) -> int:
        return len(self._requirements)

    # ------------------------------------------------------------------
    # Mutations

    def add_requirement(self, code: str, domain_id: str, title: str, description: str = "") -> Requirement:
        """Create a requirement with a freshly minted stable id"""
        code = (code or "").strip()
        title = (title or "").strip()
        self._validate_code(code)
        if code in self._code_index:
            raise DuplicateCodeError(code)
        if domain_id not in self._domains:
            raise UnknownDomainError(domain_id)
        if not title:
            raise ValidationError("Requirement title must not be blank")

        requirement = Requirement(
            code=code,
            stable_id=self._mint_id(),
            domain_id=domain_id,
            title=title,
            description=(description or "").strip(),
        )
        self._insert(requirement)
        logger.info("Created requirement %s (%s) in %s", code, requirement.stable_id, domain_id)
        return requirement

    def rename_requirement(self, stable_id: str, new_code: str) -> Requirement:
        """Change a requirement's code; records keyed by stable id are untouched"""
        requirement = self.require(stable_id)
        new_code = (new_code or "").strip()
        if new_code == requirement.code:
            return requirement
        self._validate_code(new_code)
        if new_code in self._code_index:
            raise DuplicateCodeError(new_code)

        old_code = requirement.code
        del self._code_index[old_code]
        requirement.code = new_code
        self._code_index[new_code] = stable_id
        self._sort_domain(self._domains[requirement.domain_id])
        logger.info("Renamed requirement %s -> %s (%s)", old_code, new_code, stable_id)
        return requirement

    def update_requirement(self, stable_id: str, title: Optional[str] = None,
                           description: Optional[str] = None,
                           domain_id: Optional[str] = None) -> Requirement:
        """Edit a requirement's fields, moving it between domains if asked"""
        requirement = self.require(stable_id)
        if domain_id is not None and domain_id not in self._domains:
            raise UnknownDomainError(domain_id)
        if title is not None and not title.strip():
            raise ValidationError("Requirement title must not be blank")

        if title is not None:
            requirement.title = title.strip()
        if description is not None:
            requirement.description = description.strip()
        if domain_id is not None and domain_id != requirement.domain_id:
            self._domains[requirement.domain_id].requirement_ids.remove(stable_id)
            requirement.domain_id = domain_id
            target = self._domains[domain_id]
            target.requirement_ids.append(stable_id)
            self._sort_domain(target)
        return requirement

    def delete_requirement(self, stable_id: str, strict: bool = False) -> bool:
        """Remove a requirement and cascade to every subscribed store.

        Returns False when the id is already absent (no-op), unless
        ``strict`` is set, in which case ``NotFoundError`` is raised.
        """
        requirement = self._requirements.get(stable_id)
        if requirement is None:
            if strict:
                raise NotFoundError("Requirement", stable_id)
            return False

        self._domains[requirement.domain_id].requirement_ids.remove(stable_id)
        del self._code_index[requirement.code]
        del self._requirements[stable_id]
        for listener in self._listeners:
            listener.requirement_deleted(stable_id)
        logger.info("Deleted requirement %s (%s)", requirement.code, stable_id)
        return True

    # ------------------------------------------------------------------
    # Requirement tags

    def add_tag(self, stable_id: str, tag_id: str) -> bool:
        requirement = self.require(stable_id)
        if tag_id in requirement.tags:
            return False
        requirement.tags.add(tag_id)
        return True

    def remove_tag(self, stable_id: str, tag_id: str) -> bool:
        requirement = self.require(stable_id)
        if tag_id not in requirement.tags:
            return False
        requirement.tags.discard(tag_id)
        return True

    def toggle_tag(self, stable_id: str, tag_id: str) -> bool:
        """Flip a tag; True if the requirement carries it afterwards"""
        requirement = self.require(stable_id)
        if tag_id in requirement.tags:
            requirement.tags.discard(tag_id)
            return False
        requirement.tags.add(tag_id)
        return True

    def set_requirement_tags(self, stable_id: str, tag_ids: Iterable[str]) -> Requirement:
        requirement = self.require(stable_id)
        requirement.tags = set(tag_ids)
        return requirement

    def retag(self, old_tag_id: str, new_tag_id: str) -> int:
        """Replace a tag id on every requirement carrying it"""
        changed = 0
        for requirement in self._requirements.values():
            if old_tag_id in requirement.tags:
                requirement.tags.discard(old_tag_id)
                requirement.tags.add(new_tag_id)
                changed += 1
        return changed

    def strip_tag(self, tag_id: str) -> int:
        """Remove a tag id from every requirement carrying it"""
        changed = 0
        for requirement in self._requirements.values():
            if tag_id in requirement.tags:
                requirement.tags.discard(tag_id)
                changed += 1
        return changed

    # ------------------------------------------------------------------
    # Identity fixup

    def ensure_stable_ids(self) -> int:
        """Assign a stable id to every loaded requirement lacking one.

        Returns the number of ids assigned; a second call returns 0.
        """
        pending, self._unidentified = self._unidentified, []
        assigned = 0
        for requirement in pending:
            if requirement.code in self._code_index:
                logger.warning("Dropping duplicate requirement code %s during identity fixup",
                               requirement.code)
                continue
            requirement.stable_id = self._mint_id()
            self._insert(requirement)
            assigned += 1
        if assigned:
            logger.info("Assigned stable ids to %d requirement(s)", assigned)
        return assigned

    # ------------------------------------------------------------------
    # Serialization

    def to_dict(self) -> dict:
        retired = sorted(self._issued_ids - set(self._requirements))
        return {
            "domains": [domain.to_dict() for domain in self._domains.values()],
            "requirements": [requirement.to_dict() for requirement in self.requirements()],
            "retired_ids": retired,
        }

    @classmethod
    def from_dict(cls, data: dict, id_factory: Optional[Callable[[], str]] = None) -> "CatalogueStore":
        """Build a store from serialized data.

        Domain membership is rebuilt from each requirement's ``domain_id``.
        Requirements without a ``stable_id`` are held back until
        :meth:`ensure_stable_ids` runs.
        """
        domains = [
            Domain(id=item["id"], title=item.get("title", item["id"]),
                   description=item.get("description", ""))
            for item in data["domains"]
        ]
        store = cls(domains, id_factory=id_factory)
        store._issued_ids.update(data.get("retired_ids") or [])
        for item in data.get("requirements") or []:
            requirement = Requirement.from_dict(item)
            if requirement.domain_id not in store._domains:
                raise UnknownDomainError(requirement.domain_id)
            if not requirement.stable_id:
                store._unidentified.append(requirement)
                continue
            if requirement.code in store._code_index:
                raise DuplicateCodeError(requirement.code)
            if requirement.stable_id in store._requirements:
                raise ValidationError(f"Duplicate stable id {requirement.stable_id!r}")
            store._insert(requirement)
        return store

    # ------------------------------------------------------------------

    def _insert(self, requirement: Requirement):
        self._requirements[requirement.stable_id] = requirement
        self._code_index[requirement.code] = requirement.stable_id
        self._issued_ids.add(requirement.stable_id)
        domain = self._domains[requirement.domain_id]
        domain.requirement_ids.append(requirement.stable_id)
        self._sort_domain(domain)

    def _sort_domain(self, domain: Domain):
        domain.requirement_ids.sort(key=lambda stable_id: self._requirements[stable_id].code)

    def _mint_id(self) -> str:
        stable_id = self._id_factory()
        while stable_id in self._issued_ids:
            stable_id = self._id_factory()
        self._issued_ids.add(stable_id)
        return stable_id

    @staticmethod
    def _validate_code(code: str):
        if not CODE_PATTERN.match(code):
            raise ValidationError(
                f"Invalid requirement code {code!r}; use DOMAIN-NUMBER (e.g. GOV-036)"
            )
