"""GRC Manager - the tracker context tying every store together"""

import json
import logging
import threading
from functools import wraps
from typing import Callable, List, Optional

from . import aggregation, seed
from .catalogue import CatalogueStore
from .config import config
from .exceptions import GRCError, NotFoundError, PersistenceError
from .models import (
    ComplianceRecord, ComplianceStatus, DomainHealth, EssentialEightSummary,
    Project, Requirement, Risk, Tag, Task
)
from .search import search as search_tracker
from .snapshot import (
    Stores, decode_board, decode_ledger, decode_links, decode_tags,
    export_snapshot, import_snapshot, pin_domains, strip_undefined_tags
)
from .storage import MemoryStorage, Storage
from .tags import TagTaxonomy

logger = logging.getLogger(__name__)

_LOAD_ERRORS = (ValueError, KeyError, TypeError, AttributeError, GRCError)


def mutation(*families):
    """Serialize a mutating call and save the named store families after it"""
    def decorator(f):
        @wraps(f)
        def wrapper(self, *args, **kwargs):
            with self._lock:
                result = f(self, *args, **kwargs)
                self.persist(*families)
                return result
        return wrapper
    return decorator


def synchronized(f):
    """Run a read under the manager lock"""
    @wraps(f)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return f(self, *args, **kwargs)
    return wrapper


class GRCManager:
    """Manages GRC operations.

    Owns the catalogue, compliance ledger, tag taxonomy, project board and
    link registry. Every mutating method validates first, applies the
    change to all affected stores, then saves those store families through
    the storage collaborator. Save failures are logged and remembered in
    ``unsaved`` / ``last_save_error``; the in-memory state is kept.
    """

    def __init__(self, storage: Optional[Storage] = None,
                 id_factory: Optional[Callable[[], str]] = None,
                 essential_eight: Optional[List[dict]] = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.id_factory = id_factory
        self.essential_eight = essential_eight if essential_eight is not None else seed.essential_eight_controls()
        self.last_save_error: Optional[PersistenceError] = None
        self._failed_families = set()
        self._lock = threading.RLock()
        self._stores: Optional[Stores] = None

    # ------------------------------------------------------------------
    # Store access

    @property
    def catalogue(self) -> CatalogueStore:
        return self._current().catalogue

    @property
    def ledger(self):
        return self._current().ledger

    @property
    def tags(self):
        return self._current().tags

    @property
    def board(self):
        return self._current().board

    @property
    def links(self):
        return self._current().links

    @property
    def lock(self):
        """The re-entrant lock guarding every store"""
        return self._lock

    @property
    def unsaved(self) -> bool:
        return bool(self._failed_families)

    def replace_stores(self, stores: Stores):
        with self._lock:
            if self._stores is not None:
                self._stores.detach()
            self._stores = stores

    def _current(self) -> Stores:
        if self._stores is None:
            with self._lock:
                if self._stores is None:
                    self._stores = self._default_stores()
        return self._stores

    # ------------------------------------------------------------------
    # Lifecycle

    def load(self) -> "GRCManager":
        """Read every store family from storage.

        Missing or malformed blobs fall back to the built-in defaults;
        this never raises. Requirements lacking a stable id get one and
        the catalogue is saved straight away.
        """
        with self._lock:
            raw_catalogue = self._read("catalogue")
            catalogue = None
            if raw_catalogue is not None:
                try:
                    catalogue = CatalogueStore.from_dict(pin_domains(raw_catalogue),
                                                         id_factory=self.id_factory)
                except _LOAD_ERRORS as e:
                    logger.warning("Malformed catalogue in storage (%s); using built-in catalogue", e)
            first_run = catalogue is None
            if first_run:
                catalogue = CatalogueStore.from_dict(seed.default_catalogue_data(), id_factory=self.id_factory)
            assigned = catalogue.ensure_stable_ids()

            board = self._decode("projects", decode_board, _empty_board)
            stores = Stores(
                catalogue=catalogue,
                ledger=self._decode("compliance", lambda d: decode_ledger(catalogue, d),
                                    lambda: decode_ledger(catalogue, {})),
                tags=self._decode("tags", lambda d: decode_tags(catalogue, d),
                                  lambda: _default_tags(catalogue)),
                board=board,
                links=self._decode("links", lambda d: decode_links(catalogue, board, d),
                                   lambda: decode_links(catalogue, board, {})),
            )
            self.replace_stores(stores)
            stripped = strip_undefined_tags(catalogue, stores.tags)

            if first_run and config.SEED_DEMO_TAGS:
                self._apply_demo_tags()
            if assigned or first_run or stripped:
                self.persist("catalogue")
            logger.info("Loaded %d requirements across %d domains",
                        len(catalogue), len(catalogue.domains()))
        return self

    def serialize(self) -> dict:
        return {
            "catalogue": self.catalogue.to_dict(),
            "compliance": self.ledger.to_dict(),
            "tags": self.tags.to_dict(),
            "links": self.links.to_dict(),
            "projects": self.board.to_dict(),
        }

    def persist(self, *families) -> bool:
        """Save the given store families plus any that failed earlier"""
        pending = list(families) + [f for f in self._failed_families if f not in families]
        if not pending:
            return True
        serialized = self.serialize()
        ok = True
        for family in pending:
            key = config.STORAGE_KEYS[family]
            try:
                self.storage.save(key, json.dumps(serialized[family]))
                self._failed_families.discard(family)
            except Exception as e:
                self._failed_families.add(family)
                self.last_save_error = PersistenceError(key, e)
                logger.warning("Save error (non-fatal), running unsaved: %s", self.last_save_error)
                ok = False
        return ok

    # ------------------------------------------------------------------
    # Requirements

    @synchronized
    def find_requirement(self, code: str) -> Optional[Requirement]:
        return self.catalogue.find(code)

    @synchronized
    def require_code(self, code: str) -> Requirement:
        requirement = self.catalogue.find(code)
        if requirement is None:
            raise NotFoundError("Requirement", code)
        return requirement

    @synchronized
    def get_requirement(self, stable_id: str) -> Optional[Requirement]:
        return self.catalogue.get(stable_id)

    @mutation("catalogue")
    def add_requirement(self, code: str, domain_id: str, title: str, description: str = "") -> Requirement:
        return self.catalogue.add_requirement(code, domain_id, title, description)

    @mutation("catalogue")
    def rename_requirement(self, stable_id: str, new_code: str) -> Requirement:
        return self.catalogue.rename_requirement(stable_id, new_code)

    @mutation("catalogue")
    def update_requirement(self, stable_id: str, title: Optional[str] = None,
                           description: Optional[str] = None,
                           domain_id: Optional[str] = None) -> Requirement:
        return self.catalogue.update_requirement(stable_id, title, description, domain_id)

    @mutation("catalogue", "compliance", "links")
    def delete_requirement(self, stable_id: str, strict: bool = False) -> bool:
        return self.catalogue.delete_requirement(stable_id, strict=strict)

    # ------------------------------------------------------------------
    # Compliance

    @mutation("compliance")
    def set_status(self, stable_id: str, status) -> ComplianceRecord:
        return self.ledger.set_status(stable_id, status)

    @mutation("compliance")
    def set_comment(self, stable_id: str, text: str) -> ComplianceRecord:
        return self.ledger.set_comment(stable_id, text)

    @mutation("compliance")
    def set_evidence_url(self, stable_id: str, url: Optional[str]) -> ComplianceRecord:
        return self.ledger.set_evidence_url(stable_id, url)

    @mutation("compliance")
    def update_compliance(self, stable_id: str, status=None, comment: Optional[str] = None,
                          evidence_url: Optional[str] = None) -> ComplianceRecord:
        """Apply several compliance fields at once, all or none"""
        self.catalogue.require(stable_id)
        parsed = ComplianceStatus.parse(status) if status is not None else None
        record = self.ledger.record_of(stable_id)
        if parsed is not None:
            record = self.ledger.set_status(stable_id, parsed)
        if comment is not None:
            record = self.ledger.set_comment(stable_id, comment)
        if evidence_url is not None:
            record = self.ledger.set_evidence_url(stable_id, evidence_url)
        return record or ComplianceRecord(requirement_id=stable_id)

    @synchronized
    def status_of(self, stable_id: str) -> ComplianceStatus:
        return self.ledger.status_of(stable_id)

    # ------------------------------------------------------------------
    # Tags

    @mutation("tags")
    def create_tag(self, name: str, color: str, description: str = "") -> Tag:
        return self.tags.create_tag(name, color, description)

    @mutation("tags", "catalogue")
    def rename_tag(self, tag_id: str, new_name: str, new_color: str, new_description: str) -> Tag:
        return self.tags.rename_tag(tag_id, new_name, new_color, new_description)

    @mutation("tags", "catalogue")
    def delete_tag(self, tag_id: str, strict: bool = False) -> int:
        return self.tags.delete_tag(tag_id, strict=strict)

    @synchronized
    def usage_count(self, tag_id: str) -> int:
        return self.tags.usage_count(tag_id)

    @mutation("catalogue")
    def tag_requirement(self, stable_id: str, tag_id: str) -> bool:
        self._require_tag(tag_id)
        return self.catalogue.add_tag(stable_id, tag_id)

    @mutation("catalogue")
    def untag_requirement(self, stable_id: str, tag_id: str) -> bool:
        return self.catalogue.remove_tag(stable_id, tag_id)

    @mutation("catalogue")
    def toggle_requirement_tag(self, stable_id: str, tag_id: str) -> bool:
        """Flip a tag on a requirement; returns True if the tag is now present"""
        requirement = self.catalogue.require(stable_id)
        if tag_id not in requirement.tags:
            self._require_tag(tag_id)
        return self.catalogue.toggle_tag(stable_id, tag_id)

    @mutation("catalogue")
    def set_requirement_tags(self, stable_id: str, tag_ids) -> Requirement:
        self.catalogue.require(stable_id)
        tag_ids = set(tag_ids)
        for tag_id in tag_ids:
            self._require_tag(tag_id)
        return self.catalogue.set_requirement_tags(stable_id, tag_ids)

    # ------------------------------------------------------------------
    # Projects, tasks, risks

    @mutation("projects")
    def add_project(self, name: str, description: str = "", status="planning") -> Project:
        return self.board.add_project(name, description, status)

    @mutation("projects")
    def update_project(self, project_id: str, **fields) -> Project:
        return self.board.update_project(project_id, **fields)

    @mutation("projects", "links")
    def delete_project(self, project_id: str, strict: bool = False) -> bool:
        return self.board.delete_project(project_id, strict=strict)

    @synchronized
    def get_project(self, project_id: str) -> Optional[Project]:
        return self.board.get_project(project_id)

    @mutation("projects")
    def add_task(self, project_id: str, name: str, **fields) -> Task:
        return self.board.add_task(project_id, name, **fields)

    @mutation("projects")
    def update_task(self, task_id: str, **fields) -> Task:
        return self.board.update_task(task_id, **fields)

    @mutation("projects")
    def mark_task_complete(self, task_id: str) -> Task:
        return self.board.mark_task_complete(task_id)

    @mutation("projects")
    def mark_task_incomplete(self, task_id: str) -> Task:
        return self.board.mark_task_incomplete(task_id)

    @mutation("projects")
    def delete_task(self, task_id: str, strict: bool = False) -> bool:
        return self.board.delete_task(task_id, strict=strict)

    @mutation("projects")
    def add_risk(self, project_id: str, name: str, **fields) -> Risk:
        return self.board.add_risk(project_id, name, **fields)

    @mutation("projects")
    def update_risk(self, risk_id: str, **fields) -> Risk:
        return self.board.update_risk(risk_id, **fields)

    @mutation("projects")
    def delete_risk(self, risk_id: str, strict: bool = False) -> bool:
        return self.board.delete_risk(risk_id, strict=strict)

    @mutation("links")
    def link_requirement(self, project_id: str, stable_id: str) -> bool:
        return self.links.link(project_id, stable_id)

    @mutation("links")
    def unlink_requirement(self, project_id: str, stable_id: str) -> bool:
        return self.links.unlink(project_id, stable_id)

    @synchronized
    def project_counts(self, project_id: str) -> dict:
        self.board.require_project(project_id)
        return aggregation.project_counts(self.board, self.links, project_id)

    # ------------------------------------------------------------------
    # Aggregations

    @synchronized
    def domain_health(self, domain_id: str) -> DomainHealth:
        return aggregation.domain_health(self.catalogue, self.ledger, domain_id)

    @synchronized
    def overall_compliance_rate(self) -> int:
        return aggregation.overall_compliance_rate(self.catalogue, self.ledger)

    @synchronized
    def essential_eight_summary(self) -> EssentialEightSummary:
        return aggregation.essential_eight_summary(self.catalogue, self.ledger, self.essential_eight)

    @synchronized
    def dashboard_stats(self) -> dict:
        return aggregation.dashboard_stats(self.catalogue, self.ledger, self.board)

    @synchronized
    def search(self, query: str) -> List[dict]:
        return search_tracker(self, query)

    @synchronized
    def get_compliance_status(self) -> dict:
        """Get overall compliance status"""
        total = len(self.catalogue)
        completed = aggregation.completed_requirements_count(self.catalogue, self.ledger)
        return {
            "total": total,
            "compliant": completed,
            "non_compliant": total - completed,
            "compliance_rate": self.overall_compliance_rate(),
        }

    # ------------------------------------------------------------------
    # Bulk operations

    @synchronized
    def export_snapshot(self) -> dict:
        return export_snapshot(self)

    def import_snapshot(self, payload: dict):
        with self._lock:
            import_snapshot(self, payload)
            self.persist(*config.STORAGE_KEYS)

    @mutation("compliance", "links", "projects")
    def clear_all_data(self):
        """Drop compliance records, projects, tasks, risks and links"""
        self.ledger.clear()
        self.board.clear()
        self.links.clear()
        logger.info("Cleared all user data")

    # ------------------------------------------------------------------

    def _require_tag(self, tag_id: str):
        if tag_id not in self.tags:
            raise NotFoundError("Tag", tag_id)

    def _apply_demo_tags(self):
        for code, tag_ids in seed.DEMO_REQUIREMENT_TAGS.items():
            requirement = self.catalogue.find(code)
            if requirement is None:
                continue
            for tag_id in tag_ids:
                if tag_id in self.tags:
                    requirement.tags.add(tag_id)

    def _read(self, family: str):
        """Raw decoded JSON for a family, or None when absent or unreadable"""
        key = config.STORAGE_KEYS[family]
        try:
            blob = self.storage.load(key)
        except Exception as e:
            logger.warning("Failed to read storage key %r (%s); using defaults", key, e)
            return None
        if blob is None:
            return None
        try:
            return json.loads(blob)
        except ValueError as e:
            logger.warning("Failed to parse storage key %r (%s); using defaults", key, e)
            return None

    def _decode(self, family: str, decoder, fallback):
        raw = self._read(family)
        if raw is None:
            return fallback()
        try:
            return decoder(raw)
        except _LOAD_ERRORS as e:
            logger.warning("Malformed %s in storage (%s); using defaults", family, e)
            return fallback()

    def _default_stores(self) -> Stores:
        catalogue = CatalogueStore.from_dict(seed.default_catalogue_data(), id_factory=self.id_factory)
        catalogue.ensure_stable_ids()
        board = _empty_board()
        return Stores(
            catalogue=catalogue,
            ledger=decode_ledger(catalogue, {}),
            tags=_default_tags(catalogue),
            board=board,
            links=decode_links(catalogue, board, {}),
        )


def _empty_board():
    return decode_board({})


def _default_tags(catalogue: CatalogueStore) -> TagTaxonomy:
    return TagTaxonomy(catalogue, seed.default_tags())
