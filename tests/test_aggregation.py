"""Test suite for the aggregation engine"""

from pspf_grc import aggregation
from pspf_grc.catalogue import CatalogueStore
from pspf_grc.compliance import ComplianceLedger
from pspf_grc.models import ComplianceStatus, Domain, HealthStatus


def build_risk_domain(count=22):
    store = CatalogueStore([Domain("risk", "Risk Management", "")])
    for number in range(36, 36 + count):
        store.add_requirement(f"RISK-{number:03d}", "risk", f"Obligation {number}")
    return store


def set_statuses(catalogue, ledger, statuses):
    for requirement, status in zip(catalogue.list_by_domain("risk"), statuses):
        ledger.set_status(requirement.stable_id, status)


def test_domain_health_warning():
    """Test 18 met plus 2 risk managed out of 22 is a warning"""
    catalogue = build_risk_domain()
    ledger = ComplianceLedger(catalogue)
    set_statuses(catalogue, ledger,
                 [ComplianceStatus.MET] * 18 + [ComplianceStatus.RISK_MANAGED] * 2)

    health = aggregation.domain_health(catalogue, ledger, "risk")

    assert health.status == HealthStatus.WARNING
    assert health.met == 18
    assert health.total == 22
    assert health.text == "Good"


def test_domain_health_healthy():
    """Test all complete is healthy, counting N/A as complete"""
    catalogue = build_risk_domain()
    ledger = ComplianceLedger(catalogue)
    set_statuses(catalogue, ledger,
                 [ComplianceStatus.MET] * 21 + [ComplianceStatus.NOT_APPLICABLE])

    health = aggregation.domain_health(catalogue, ledger, "risk")

    assert health.status == HealthStatus.HEALTHY
    assert health.met == 22
    assert health.text == "Excellent"


def test_domain_health_critical():
    """Test too little progress is critical"""
    catalogue = build_risk_domain()
    ledger = ComplianceLedger(catalogue)
    set_statuses(catalogue, ledger, [ComplianceStatus.MET] * 10)

    assert aggregation.domain_health(catalogue, ledger, "risk").status == HealthStatus.CRITICAL


def test_explained_not_met_counts_towards_warning():
    """Test that not-met items with a real comment count as explained"""
    catalogue = build_risk_domain(count=5)
    ledger = ComplianceLedger(catalogue)
    requirements = catalogue.list_by_domain("risk")
    set_statuses(catalogue, ledger, [ComplianceStatus.MET] * 3 + [ComplianceStatus.NOT_MET] * 2)

    ledger.set_comment(requirements[3].stable_id, "short")
    assert aggregation.domain_health(catalogue, ledger, "risk").status == HealthStatus.CRITICAL

    ledger.set_comment(requirements[3].stable_id, "Funding approved for next year")
    assert aggregation.domain_health(catalogue, ledger, "risk").status == HealthStatus.WARNING


def test_empty_domain_is_critical(catalogue, ledger):
    """Test a domain with no requirements"""
    health = aggregation.domain_health(catalogue, ledger, "physical")
    assert health.status == HealthStatus.CRITICAL
    assert (health.met, health.total) == (0, 0)


def test_overall_rate_counts_strict_met(catalogue, ledger):
    """Test overall rate ignores N/A while completed count includes it"""
    ledger.set_status(catalogue.find("GOV-001").stable_id, "yes")
    ledger.set_status(catalogue.find("GOV-002").stable_id, "na")

    assert aggregation.overall_compliance_rate(catalogue, ledger) == 33
    assert aggregation.completed_requirements_count(catalogue, ledger) == 2


def test_overall_rate_empty_catalogue():
    """Test no division by zero"""
    catalogue = CatalogueStore([Domain("risk", "Risk", "")])
    assert aggregation.overall_compliance_rate(catalogue, ComplianceLedger(catalogue)) == 0


def test_essential_eight_summary():
    """Test Essential Eight counts and rounding"""
    catalogue = CatalogueStore([Domain("technology", "Technology", "")])
    controls = []
    for number in range(99, 107):
        code = f"TECH-{number:03d}"
        catalogue.add_requirement(code, "technology", f"Control {number}")
        controls.append({"code": code, "label": f"Control {number}"})
    ledger = ComplianceLedger(catalogue)
    ledger.set_status(catalogue.find("TECH-099").stable_id, "yes")
    ledger.set_status(catalogue.find("TECH-100").stable_id, "partial")

    summary = aggregation.essential_eight_summary(catalogue, ledger, controls)

    assert summary.total == 8
    assert summary.met == 1
    assert summary.percentage == 13
    assert summary.counts[ComplianceStatus.RISK_MANAGED] == 1
    assert summary.counts[ComplianceStatus.NOT_SET] == 6
    assert [c.order for c in summary.controls] == list(range(1, 9))


def test_essential_eight_missing_requirement(catalogue, ledger):
    """Test a control whose requirement was deleted reads as Not Set"""
    summary = aggregation.essential_eight_summary(
        catalogue, ledger, [{"code": "TECH-103", "label": "Application control"}]
    )
    assert summary.controls[0].status == ComplianceStatus.NOT_SET
    assert summary.percentage == 0


def test_dashboard_stats(catalogue, ledger, board):
    """Test the dashboard headline figures"""
    project = board.add_project("Audit")
    done = board.add_task(project.id, "Done")
    board.add_task(project.id, "Open")
    board.mark_task_complete(done.id)
    ledger.set_status(catalogue.find("RISK-036").stable_id, "yes")

    stats = aggregation.dashboard_stats(catalogue, ledger, board)

    assert stats["total_requirements"] == 3
    assert stats["total_domains"] == 3
    assert stats["total_tasks"] == 2
    assert stats["completed_tasks"] == 1
    assert stats["task_completion_rate"] == 50
    assert stats["compliance_rate"] == 33
    risk = next(d for d in stats["domains"] if d["domain_id"] == "risk")
    assert risk["status"] == "healthy"
    assert risk["progress"] == 100
