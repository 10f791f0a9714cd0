"""Test suite for snapshot export and import"""

import pytest
from conftest import make_id_factory
from pspf_grc.exceptions import FormatError
from pspf_grc.grc_manager import GRCManager
from pspf_grc.models import ComplianceStatus, ProjectStatus, TaskStatus
from pspf_grc.storage import MemoryStorage


def populate(grc):
    req = grc.require_code("GOV-001")
    project = grc.add_project("Audit", "Annual audit")
    grc.add_task(project.id, "Collect evidence")
    grc.add_risk(project.id, "Staff turnover", likelihood="high", impact="medium")
    grc.set_status(req.stable_id, "yes")
    grc.set_comment(req.stable_id, "Signed off")
    grc.create_tag("Board", "#111111", "Board attention")
    grc.tag_requirement(req.stable_id, "board")
    grc.link_requirement(project.id, req.stable_id)
    grc.rename_requirement(req.stable_id, "GOV-500")
    return req.stable_id, project.id


def test_export_shape(grc):
    """Test the exported document layout"""
    snapshot = grc.export_snapshot()

    assert snapshot["version"] == "2.0"
    assert "timestamp" in snapshot
    assert set(snapshot["data"]) == {"catalogue", "compliance", "tags", "links", "projects"}


def test_round_trip(grc):
    """Test importing an export into a fresh tracker reproduces it"""
    stable_id, project_id = populate(grc)
    snapshot = grc.export_snapshot()

    other = GRCManager(storage=MemoryStorage(), id_factory=make_id_factory("other_")).load()
    other.import_snapshot(snapshot)

    assert other.serialize() == grc.serialize()
    renamed = other.require_code("GOV-500")
    assert renamed.stable_id == stable_id
    assert renamed.tags == {"board"}
    assert other.status_of(stable_id) == ComplianceStatus.MET
    assert other.links.requirements_of(project_id) == {stable_id}
    assert other.project_counts(project_id) == {"tasks": 1, "risks": 1, "requirements": 1}


def test_import_persists_everything(grc):
    """Test a successful import saves every store family"""
    populate(grc)
    snapshot = grc.export_snapshot()
    storage = MemoryStorage()
    other = GRCManager(storage=storage, id_factory=make_id_factory("other_")).load()

    other.import_snapshot(snapshot)

    assert set(storage.blobs) == {
        "pspf_catalogue", "pspf_compliance", "pspf_tags", "pspf_links", "pspf_projects"
    }


@pytest.mark.parametrize("payload", [
    None,
    [],
    {"version": "2.0"},
    {"version": "3.0", "data": {}},
    {"version": "2.0", "data": {"catalogue": {}}},
    {"version": "2.0", "data": {"catalogue": {"domains": "x"}, "compliance": {}, "tags": {},
                                "links": {}, "projects": {}}},
    {"version": "2.0", "data": {"catalogue": {"domains": [{"id": "x"}], "requirements": []},
                                "compliance": {}, "tags": {}, "links": {}, "projects": {}}},
])
def test_bad_import_changes_nothing(grc, payload):
    """Test that rejected snapshots leave every store as it was"""
    populate(grc)
    before = grc.serialize()

    with pytest.raises(FormatError):
        grc.import_snapshot(payload)

    assert grc.serialize() == before



def test_import_keeps_fixed_domains(grc):
    """Test an import cannot rename or reorder the six PSPF domains"""
    snapshot = grc.export_snapshot()
    domains = snapshot["data"]["catalogue"]["domains"]
    domains.reverse()
    domains[0]["title"] = "Renamed"

    grc.import_snapshot(snapshot)

    assert [d.id for d in grc.catalogue.domains()] == [
        "governance", "risk", "information", "technology", "personnel", "physical"
    ]
    assert grc.catalogue.get_domain("physical").title != "Renamed"


def test_import_drops_undefined_tags(grc):
    """Test requirement tags missing from the imported taxonomy are dropped"""
    snapshot = grc.export_snapshot()
    req = grc.require_code("GOV-001")
    item = next(r for r in snapshot["data"]["catalogue"]["requirements"]
                if r["stable_id"] == req.stable_id)
    item["tags"] = ["ghost", "high"]

    grc.import_snapshot(snapshot)

    assert grc.get_requirement(req.stable_id).tags == {"high"}
    assert grc.usage_count("ghost") == 0
    assert grc.delete_tag("high") == 1
    assert grc.get_requirement(req.stable_id).tags == set()

def test_legacy_import(grc):
    """Test importing a backup from the browser tracker"""
    payload = {
        "version": "1.0",
        "timestamp": "2024-11-02T03:04:05.000Z",
        "data": {
            "compliance": {
                "GOV-001": {"status": "yes", "comment": "Done"},
                "NOPE-001": {"status": "no"},
            },
            "projects": [{
                "id": 1730000000000,
                "name": "Uplift",
                "description": "E8 uplift",
                "status": "active",
                "requirements": ["TECH-099", "GOV-001"],
                "createdAt": "2024-10-27T00:00:00.000Z",
            }],
            "tasks": [{
                "id": 1730000000001,
                "projectId": 1730000000000,
                "name": "Patch servers",
                "status": "todo",
            }],
            "incidents": [{"id": 5, "name": "Lost laptop"}],
        },
    }

    grc.import_snapshot(payload)

    gov = grc.require_code("GOV-001")
    tech = grc.require_code("TECH-099")
    assert grc.status_of(gov.stable_id) == ComplianceStatus.MET
    assert len(grc.ledger.records()) == 1
    project = grc.get_project("1730000000000")
    assert project.status == ProjectStatus.ACTIVE
    assert grc.links.requirements_of(project.id) == {gov.stable_id, tech.stable_id}
    [task] = grc.board.tasks(project.id)
    assert task.status == TaskStatus.PENDING
    assert len(grc.catalogue) == 218
