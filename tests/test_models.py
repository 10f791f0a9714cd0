"""Test suite for PSPF GRC models"""

import pytest
from datetime import datetime
from pspf_grc.exceptions import ValidationError
from pspf_grc.models import (
    ComplianceRecord, ComplianceStatus, Requirement, Risk, RiskRating,
    RiskSeverity, Task, TaskStatus
)


def test_compliance_status_labels():
    """Test status display text"""
    assert ComplianceStatus.MET.label == "Met"
    assert ComplianceStatus.NOT_MET.label == "Not Met"
    assert ComplianceStatus.RISK_MANAGED.label == "Risk Managed"
    assert ComplianceStatus.NOT_APPLICABLE.label == "N/A"
    assert ComplianceStatus.NOT_SET.label == "Not Set"


def test_compliance_status_parse():
    """Test parsing statuses from values and names"""
    assert ComplianceStatus.parse("yes") == ComplianceStatus.MET
    assert ComplianceStatus.parse("partial") == ComplianceStatus.RISK_MANAGED
    assert ComplianceStatus.parse("not_applicable") == ComplianceStatus.NOT_APPLICABLE
    assert ComplianceStatus.parse("risk-managed") == ComplianceStatus.RISK_MANAGED
    assert ComplianceStatus.parse(None) == ComplianceStatus.NOT_SET
    assert ComplianceStatus.parse(ComplianceStatus.NOT_MET) == ComplianceStatus.NOT_MET

    with pytest.raises(ValidationError):
        ComplianceStatus.parse("maybe")


def test_requirement_serialization():
    """Test requirement to_dict/from_dict"""
    req = Requirement(
        code="GOV-001",
        stable_id="req_1",
        domain_id="governance",
        title="Test Requirement",
        description="This is a test requirement",
        tags={"low", "critical"},
    )

    data = req.to_dict()
    assert data["tags"] == ["critical", "low"]
    assert Requirement.from_dict(data) == req


def test_requirement_without_stable_id():
    """Test loading a requirement saved before stable ids existed"""
    req = Requirement.from_dict({"code": "GOV-001", "domain_id": "governance", "title": "T"})
    assert req.stable_id is None
    assert req.tags == set()


def test_compliance_record_reads_legacy_url():
    """Test that legacy records keep their evidence link"""
    record = ComplianceRecord.from_dict("req_1", {"status": "no", "comment": "x", "url": "http://e"})
    assert record.status == ComplianceStatus.NOT_MET
    assert record.evidence_url == "http://e"

    empty = ComplianceRecord.from_dict("req_1", {})
    assert empty.status == ComplianceStatus.NOT_SET
    assert empty.comment == ""
    assert empty.evidence_url is None


def test_task_completion():
    """Test task complete/incomplete"""
    task = Task(id="T1", project_id="P1", name="Write policy")

    assert task.status == TaskStatus.PENDING
    assert task.completed_at is None

    task.mark_complete()
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at is not None

    task.mark_incomplete()
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.completed_at is None


def test_task_from_legacy_dict():
    """Test reading a task saved by the browser tracker"""
    task = Task.from_dict({
        "id": 1700000000000,
        "projectId": "P1",
        "name": "Audit",
        "status": "completed",
        "dueDate": "2025-01-31",
        "createdAt": "2025-01-01T00:00:00.000Z",
        "completedAt": "2025-01-02T00:00:00.000Z",
    })
    assert task.id == "1700000000000"
    assert task.project_id == "P1"
    assert task.due_date == "2025-01-31"
    assert task.completed_at.year == 2025


def test_risk_assessment():
    """Test risk assessment"""
    risk = Risk(
        id="R001",
        project_id="P1",
        name="Test Risk",
        description="This is a test risk",
        likelihood=RiskRating.HIGH,
        impact=RiskRating.MEDIUM,
        severity=RiskSeverity.HIGH,
        created_at=datetime.now(),
    )

    assessment = risk.assess()
    assert assessment["id"] == "R001"
    assert assessment["likelihood"] == "high"
    assert assessment["impact"] == "medium"
    assert assessment["severity"] == "high"
