"""Test suite for the Flask JSON API"""

import threading

import pytest
from pspf_grc.api import create_app


@pytest.fixture
def client(grc):
    app = create_app(grc)
    app.config['TESTING'] = True
    return app.test_client()


def test_list_domains(client):
    """Test domains come back with their health"""
    response = client.get('/api/domains')

    assert response.status_code == 200
    domains = response.get_json()
    assert len(domains) == 6
    assert domains[0]["health"]["status"] == "critical"


def test_unknown_domain(client):
    """Test unknown domain is a 404"""
    response = client.get('/api/domains/finance')
    assert response.status_code == 404
    assert response.get_json()["type"] == "UnknownDomainError"


def test_requirement_lifecycle(client, grc):
    """Test create, rename, compliance update and delete over HTTP"""
    response = client.post('/api/requirements', json={
        "code": "GOV-036", "domain_id": "governance", "title": "New obligation",
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body["unsaved"] is False
    stable_id = body["stable_id"]

    response = client.post('/api/requirements/GOV-036/rename', json={"code": "GOV-037"})
    assert response.get_json()["stable_id"] == stable_id

    response = client.put('/api/requirements/GOV-037/compliance', json={
        "status": "partial", "comment": "Compensating control",
    })
    assert response.get_json()["compliance"]["status_text"] == "Risk Managed"

    response = client.delete('/api/requirements/GOV-037')
    assert response.status_code == 200
    assert grc.get_requirement(stable_id) is None
    assert client.get('/api/requirements/GOV-037').status_code == 404


def test_duplicate_code_conflict(client):
    """Test duplicate codes are a 409"""
    response = client.post('/api/requirements', json={
        "code": "GOV-001", "domain_id": "governance", "title": "Again",
    })
    assert response.status_code == 409


def test_bad_status_rejected(client):
    """Test an unknown compliance status is a 400"""
    response = client.put('/api/requirements/GOV-001/compliance', json={"status": "maybe"})
    assert response.status_code == 400
    assert response.get_json()["type"] == "ValidationError"


def test_bad_project_status_rejected(client):
    """Test an unknown project status is a 400"""
    response = client.post('/api/projects', json={"name": "Audit", "status": "abandoned"})
    assert response.status_code == 400
    assert response.get_json()["type"] == "ValidationError"


def test_filter_by_tag(client):
    """Test the requirements listing tag filter"""
    client.post('/api/requirements/GOV-002/tags/critical')

    response = client.get('/api/requirements?tags=critical')

    assert [r["code"] for r in response.get_json()] == ["GOV-002"]


def test_tag_endpoints(client):
    """Test tag create, rename and delete"""
    response = client.post('/api/tags', json={"name": "Board Review", "color": "#123456"})
    assert response.status_code == 201
    assert response.get_json()["id"] == "board-review"

    client.post('/api/requirements/GOV-001/tags/board-review')
    response = client.patch('/api/tags/board-review', json={"name": "Board"})
    assert response.get_json()["id"] == "board"

    response = client.delete('/api/tags/board')
    assert response.get_json()["usage"] == 1


def test_project_endpoints(client):
    """Test projects, tasks, risks and links"""
    response = client.post('/api/projects', json={"name": "Audit"})
    assert response.status_code == 201
    project_id = response.get_json()["id"]

    client.post(f'/api/projects/{project_id}/requirements/GOV-001')
    task = client.post(f'/api/projects/{project_id}/tasks', json={"name": "Evidence"}).get_json()
    client.post(f'/api/projects/{project_id}/risks', json={
        "name": "Delay", "likelihood": "very-high", "impact": "very-high",
    })
    client.post(f"/api/tasks/{task['id']}/complete")

    body = client.get(f'/api/projects/{project_id}').get_json()
    assert body["requirements"] == ["GOV-001"]
    assert body["counts"] == {"tasks": 1, "risks": 1, "requirements": 1}
    assert body["tasks"][0]["status"] == "completed"
    assert body["risks"][0]["severity"] == "critical"

    assert client.delete(f'/api/projects/{project_id}').status_code == 200
    assert client.delete(f'/api/projects/{project_id}').status_code == 404


def test_stats_and_essential_eight(client):
    """Test aggregate endpoints"""
    stats = client.get('/api/stats').get_json()
    assert stats["total_requirements"] == 218

    summary = client.get('/api/essential-eight').get_json()
    assert summary["total"] == 8
    assert summary["percentage"] == 0


def test_export_import(client):
    """Test bulk export and a rejected import"""
    snapshot = client.get('/api/export').get_json()
    assert snapshot["version"] == "2.0"

    response = client.post('/api/import', json={"version": "9.9", "data": {}})
    assert response.status_code == 400
    assert response.get_json()["type"] == "FormatError"

    response = client.post('/api/import', json=snapshot)
    assert response.get_json()["imported"] is True


def test_requests_wait_for_the_lock(client, grc):
    """Test a request is served only once the tracker lock is free"""
    responses = []
    worker = threading.Thread(target=lambda: responses.append(client.get('/api/stats')))

    with grc.lock:
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()

    worker.join(timeout=5)
    assert not worker.is_alive()
    assert responses[0].status_code == 200


def test_search_endpoint(client):
    """Test the search endpoint"""
    client.post('/api/projects', json={"name": "Patch uplift"})

    results = client.get('/api/search?q=patch').get_json()

    assert results[0]["type"] == "Project"
