"""Shared fixtures for the PSPF GRC test suite"""

import itertools

import pytest

from pspf_grc.catalogue import CatalogueStore
from pspf_grc.compliance import ComplianceLedger
from pspf_grc.grc_manager import GRCManager
from pspf_grc.links import LinkRegistry
from pspf_grc.models import Domain
from pspf_grc.projects import ProjectBoard
from pspf_grc.storage import MemoryStorage
from pspf_grc.tags import TagTaxonomy


def make_id_factory(prefix="req_"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter):05d}"


@pytest.fixture
def id_factory():
    return make_id_factory()


@pytest.fixture
def catalogue(id_factory):
    """A small catalogue: two populated domains and one empty one"""
    store = CatalogueStore(
        [
            Domain("governance", "Governance", "Security governance"),
            Domain("risk", "Risk Management", "Security risk management"),
            Domain("physical", "Physical Security", "Facilities"),
        ],
        id_factory=id_factory,
    )
    store.add_requirement("GOV-002", "governance", "Comply with directions")
    store.add_requirement("GOV-001", "governance", "Support portfolio entities")
    store.add_requirement("RISK-036", "risk", "Manage security risk")
    return store


@pytest.fixture
def ledger(catalogue):
    return ComplianceLedger(catalogue)


@pytest.fixture
def taxonomy(catalogue):
    return TagTaxonomy(catalogue)


@pytest.fixture
def board():
    return ProjectBoard()


@pytest.fixture
def links(catalogue, board):
    return LinkRegistry(catalogue, board)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def grc(storage, id_factory):
    """Tracker loaded with the built-in PSPF catalogue"""
    return GRCManager(storage=storage, id_factory=id_factory).load()
