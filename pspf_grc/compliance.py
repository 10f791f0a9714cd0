"""Compliance Ledger - per-requirement status, comment and evidence"""

import logging
from typing import Dict, List, Optional, Union

from .catalogue import CatalogueStore
from .exceptions import NotFoundError
from .models import ComplianceRecord, ComplianceStatus

logger = logging.getLogger(__name__)

COMPLETE_STATUSES = frozenset({ComplianceStatus.MET, ComplianceStatus.NOT_APPLICABLE})


def is_considered_complete(record: Union[ComplianceRecord, ComplianceStatus, None]) -> bool:
    """True iff the status is Met or Not Applicable.

    Every aggregation decides "complete" through this function.
    """
    if record is None:
        return False
    status = record.status if isinstance(record, ComplianceRecord) else record
    return status in COMPLETE_STATUSES


class ComplianceLedger:
    """Maps a requirement's stable id to its compliance record.

    Records are upserted on first write and are only removed when the
    catalogue deletes the requirement they belong to.
    """

    def __init__(self, catalogue: CatalogueStore, records: Optional[Dict[str, ComplianceRecord]] = None):
        self._catalogue = catalogue
        self._records: Dict[str, ComplianceRecord] = dict(records or {})
        catalogue.subscribe(self)

    def set_status(self, stable_id: str, status) -> ComplianceRecord:
        record = self._upsert(stable_id)
        record.status = ComplianceStatus.parse(status)
        logger.debug("Compliance %s -> %s", stable_id, record.status.value)
        return record

    def set_comment(self, stable_id: str, text: str) -> ComplianceRecord:
        record = self._upsert(stable_id)
        record.comment = text or ""
        return record

    def set_evidence_url(self, stable_id: str, url: Optional[str]) -> ComplianceRecord:
        """Store an evidence link as given; only surrounding whitespace is removed"""
        record = self._upsert(stable_id)
        url = (url or "").strip()
        record.evidence_url = url or None
        return record

    def status_of(self, stable_id: str) -> ComplianceStatus:
        record = self._records.get(stable_id)
        return record.status if record else ComplianceStatus.NOT_SET

    def record_of(self, stable_id: str) -> Optional[ComplianceRecord]:
        return self._records.get(stable_id)

    def has_record(self, stable_id: str) -> bool:
        return stable_id in self._records

    def records(self) -> List[ComplianceRecord]:
        return list(self._records.values())

    def clear(self):
        self._records.clear()

    def requirement_deleted(self, stable_id: str):
        self._records.pop(stable_id, None)

    def detach(self):
        """Stop listening to the catalogue (used when the ledger is replaced)"""
        self._catalogue.unsubscribe(self)

    def to_dict(self) -> dict:
        return {stable_id: record.to_dict() for stable_id, record in self._records.items()}

    @classmethod
    def from_dict(cls, catalogue: CatalogueStore, data: dict) -> "ComplianceLedger":
        """Load records, skipping any whose requirement no longer exists"""
        records = {}
        for stable_id, item in data.items():
            if stable_id not in catalogue:
                logger.warning("Dropping compliance record for unknown requirement %s", stable_id)
                continue
            records[stable_id] = ComplianceRecord.from_dict(stable_id, item)
        return cls(catalogue, records)

    def _upsert(self, stable_id: str) -> ComplianceRecord:
        if stable_id not in self._catalogue:
            raise NotFoundError("Requirement", stable_id)
        record = self._records.get(stable_id)
        if record is None:
            record = ComplianceRecord(requirement_id=stable_id)
            self._records[stable_id] = record
        return record
