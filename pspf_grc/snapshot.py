"""Bulk export/import of every store family.

Snapshots look like::

    {"version": "2.0", "timestamp": "...",
     "data": {"catalogue": {...}, "compliance": {...}, "tags": {...},
              "links": {...}, "projects": {...}}}

Version "1.0" files are backups from the browser tracker: compliance and
project links there are keyed by requirement code, and the catalogue and
tags are not included.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from . import seed
from .catalogue import CatalogueStore
from .compliance import ComplianceLedger
from .config import config
from .exceptions import FormatError, GRCError, ValidationError
from .links import LinkRegistry
from .models import ProjectStatus, TaskStatus
from .projects import ProjectBoard
from .tags import TagTaxonomy

logger = logging.getLogger(__name__)

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, GRCError)


@dataclass
class Stores:
    """One consistent set of stores, swapped into a manager as a unit"""
    catalogue: CatalogueStore
    ledger: ComplianceLedger
    tags: TagTaxonomy
    board: ProjectBoard
    links: LinkRegistry

    def detach(self):
        self.ledger.detach()
        self.links.detach()


def resolve_requirement_key(catalogue: CatalogueStore, key: str) -> Optional[str]:
    """Map a stored reference to a stable id; code-keyed legacy data is re-keyed"""
    if key in catalogue:
        return key
    requirement = catalogue.find(key)
    return requirement.stable_id if requirement else None


def pin_domains(data: dict) -> dict:
    """Catalogue data with its domains replaced by the built-in six.

    Raises ValidationError when the stored domain ids are not exactly the
    fixed set.
    """
    fixed = seed.default_catalogue_data()["domains"]
    stored_ids = [item["id"] for item in data["domains"]]
    if sorted(stored_ids) != sorted(item["id"] for item in fixed):
        raise ValidationError(f"Catalogue domains {stored_ids!r} are not the fixed PSPF domains")
    return dict(data, domains=fixed)


def strip_undefined_tags(catalogue: CatalogueStore, taxonomy: TagTaxonomy) -> int:
    """Remove tag ids the taxonomy does not define; returns how many were removed"""
    removed = 0
    for requirement in catalogue.requirements():
        unknown = {tag_id for tag_id in requirement.tags if tag_id not in taxonomy}
        if unknown:
            logger.warning("Dropping undefined tag(s) %s from requirement %s",
                           ", ".join(sorted(unknown)), requirement.code)
            requirement.tags -= unknown
            removed += len(unknown)
    return removed


def decode_catalogue(data: dict, id_factory: Optional[Callable[[], str]] = None) -> CatalogueStore:
    catalogue = CatalogueStore.from_dict(pin_domains(data), id_factory=id_factory)
    catalogue.ensure_stable_ids()
    return catalogue


def decode_ledger(catalogue: CatalogueStore, data: dict) -> ComplianceLedger:
    if not isinstance(data, dict):
        raise TypeError("compliance must be a mapping")
    records = {}
    for key, item in data.items():
        stable_id = resolve_requirement_key(catalogue, key)
        if stable_id is None:
            logger.warning("Dropping compliance record for unknown requirement %s", key)
            continue
        records[stable_id] = item
    return ComplianceLedger.from_dict(catalogue, records)


def decode_tags(catalogue: CatalogueStore, data: dict) -> TagTaxonomy:
    if not isinstance(data, dict):
        raise TypeError("tags must be a mapping")
    return TagTaxonomy.from_dict(catalogue, data)


def decode_board(data: dict) -> ProjectBoard:
    if not isinstance(data, dict):
        raise TypeError("projects must be a mapping")
    return ProjectBoard.from_dict(data)


def decode_links(catalogue: CatalogueStore, board: ProjectBoard, data: dict) -> LinkRegistry:
    if not isinstance(data, dict):
        raise TypeError("links must be a mapping")
    resolved = {}
    for project_id, keys in data.items():
        ids = set()
        for key in keys:
            stable_id = resolve_requirement_key(catalogue, key)
            if stable_id is None:
                logger.warning("Dropping link from project %s to unknown requirement %s",
                               project_id, key)
                continue
            ids.add(stable_id)
        resolved[project_id] = sorted(ids)
    return LinkRegistry.from_dict(catalogue, board, resolved)


def decode_stores(data: dict, id_factory: Optional[Callable[[], str]] = None) -> Stores:
    catalogue = decode_catalogue(data["catalogue"], id_factory)
    board = decode_board(data["projects"])
    tags = decode_tags(catalogue, data["tags"])
    strip_undefined_tags(catalogue, tags)
    return Stores(
        catalogue=catalogue,
        ledger=decode_ledger(catalogue, data["compliance"]),
        tags=tags,
        board=board,
        links=decode_links(catalogue, board, data["links"]),
    )


def export_snapshot(manager) -> dict:
    """Everything the tracker holds, tagged with the current format version"""
    return {
        "version": config.SNAPSHOT_VERSION,
        "timestamp": datetime.now().isoformat(),
        "data": manager.serialize(),
    }


def import_snapshot(manager, payload) -> Stores:
    """Replace every store with the snapshot's contents, or change nothing.

    Raises FormatError for an unknown version, a wrong top-level shape, or
    contents that cannot be decoded.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise FormatError("Invalid backup file format: expected an object with 'version' and 'data'")
    version = payload.get("version")
    if version not in config.SUPPORTED_SNAPSHOT_VERSIONS:
        raise FormatError(f"Unsupported snapshot version: {version!r}")

    data = payload["data"]
    if version == "1.0":
        data = _upgrade_legacy(manager, data)
    missing = [name for name in config.STORAGE_KEYS if name not in data]
    if missing:
        raise FormatError(f"Snapshot is missing store families: {', '.join(missing)}")

    try:
        stores = decode_stores(data, manager.id_factory)
    except _DECODE_ERRORS as e:
        raise FormatError(f"Snapshot could not be decoded: {e}") from e

    manager.replace_stores(stores)
    logger.info("Imported snapshot version %s", version)
    return stores


def _upgrade_legacy(manager, data: dict) -> dict:
    """Convert a 1.0 backup into the current data layout.

    The current catalogue and tags are kept; project requirement lists
    become links.
    """
    try:
        projects = list(data.get("projects") or [])
        links = {}
        legacy_projects = []
        for item in projects:
            project_id = str(item["id"])
            links[project_id] = list(item.get("requirements") or [])
            legacy_projects.append(dict(
                item, id=project_id,
                status=_lenient(item.get("status"), ProjectStatus, ProjectStatus.ACTIVE),
            ))
        tasks = [
            dict(item, status=_lenient(item.get("status"), TaskStatus, TaskStatus.PENDING))
            for item in data.get("tasks") or []
        ]
    except _DECODE_ERRORS as e:
        raise FormatError(f"Legacy backup could not be decoded: {e}") from e

    incidents = data.get("incidents") or []
    if incidents:
        logger.warning("Ignoring %d incident(s) from legacy backup", len(incidents))

    serialized = manager.serialize()
    return {
        "catalogue": serialized["catalogue"],
        "tags": serialized["tags"],
        "compliance": data.get("compliance") or {},
        "links": links,
        "projects": {
            "projects": legacy_projects,
            "tasks": tasks,
            "risks": list(data.get("risks") or []),
        },
    }


def _lenient(value, enum_cls, default):
    try:
        return enum_cls(value).value
    except ValueError:
        logger.warning("Unknown %s %r in legacy backup; using %s",
                       enum_cls.__name__, value, default.value)
        return default.value
