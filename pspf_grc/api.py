"""Flask JSON API over a GRCManager"""

import logging
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from .exceptions import (
    DuplicateCodeError, DuplicateTagError, FormatError, GRCError, NotFoundError,
    UnknownDomainError, ValidationError
)
from .grc_manager import GRCManager
from .search import filter_requirements

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    NotFoundError: 404,
    UnknownDomainError: 404,
    DuplicateCodeError: 409,
    DuplicateTagError: 409,
    FormatError: 400,
    ValidationError: 400,
}


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _locked(manager: GRCManager, view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        with manager.lock:
            return view(*args, **kwargs)
    return wrapper


def create_app(manager: Optional[GRCManager] = None) -> Flask:
    """Build the API around an explicit tracker context"""
    if manager is None:
        from .storage import create_storage
        manager = GRCManager(storage=create_storage()).load()

    app = Flask(__name__)
    app.extensions['grc_manager'] = manager

    def saved(body: dict, status: int = 200):
        body["unsaved"] = manager.unsaved
        return jsonify(body), status

    def requirement_view(requirement) -> dict:
        record = manager.ledger.record_of(requirement.stable_id)
        status = manager.status_of(requirement.stable_id)
        data = requirement.to_dict()
        data["compliance"] = {
            "status": status.value,
            "status_text": status.label,
            "comment": record.comment if record else "",
            "evidence_url": record.evidence_url if record else None,
        }
        data["projects"] = sorted(manager.links.projects_of(requirement.stable_id))
        return data

    def project_view(project) -> dict:
        data = project.to_dict()
        data["requirements"] = sorted(
            manager.get_requirement(stable_id).code
            for stable_id in manager.links.requirements_of(project.id)
        )
        data["counts"] = manager.project_counts(project.id)
        return data

    @app.errorhandler(GRCError)
    def handle_grc_error(e):
        status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(e, cls)), 400)
        return jsonify({"error": str(e), "type": type(e).__name__}), status

    # Domains

    @app.route('/api/domains')
    def list_domains():
        return jsonify([
            dict(domain.to_dict(), health=manager.domain_health(domain.id).to_dict())
            for domain in manager.catalogue.domains()
        ])

    @app.route('/api/domains/<domain_id>')
    def get_domain(domain_id):
        domain = manager.catalogue.get_domain(domain_id)
        return jsonify(dict(
            domain.to_dict(),
            health=manager.domain_health(domain_id).to_dict(),
            requirements=[requirement_view(r) for r in manager.catalogue.list_by_domain(domain_id)],
        ))

    # Requirements

    @app.route('/api/requirements')
    def list_requirements():
        tags = [t for t in request.args.get('tags', '').split(',') if t]
        requirements = filter_requirements(
            manager.catalogue,
            domain_id=request.args.get('domain') or None,
            text=request.args.get('q'),
            tags=tags,
        )
        return jsonify([requirement_view(r) for r in requirements])

    @app.route('/api/requirements', methods=['POST'])
    def create_requirement():
        data = _payload()
        requirement = manager.add_requirement(
            data.get('code', ''), data.get('domain_id', ''),
            data.get('title', ''), data.get('description', ''),
        )
        return saved(requirement_view(requirement), 201)

    @app.route('/api/requirements/<code>')
    def get_requirement(code):
        return jsonify(requirement_view(manager.require_code(code)))

    @app.route('/api/requirements/<code>', methods=['PATCH'])
    def update_requirement(code):
        data = _payload()
        requirement = manager.require_code(code)
        requirement = manager.update_requirement(
            requirement.stable_id,
            title=data.get('title'),
            description=data.get('description'),
            domain_id=data.get('domain_id'),
        )
        return saved(requirement_view(requirement))

    @app.route('/api/requirements/<code>/rename', methods=['POST'])
    def rename_requirement(code):
        data = _payload()
        requirement = manager.require_code(code)
        requirement = manager.rename_requirement(requirement.stable_id, data.get('code', ''))
        return saved(requirement_view(requirement))

    @app.route('/api/requirements/<code>', methods=['DELETE'])
    def delete_requirement(code):
        requirement = manager.require_code(code)
        manager.delete_requirement(requirement.stable_id)
        return saved({"deleted": code})

    @app.route('/api/requirements/<code>/compliance', methods=['PUT'])
    def update_compliance(code):
        data = _payload()
        requirement = manager.require_code(code)
        manager.update_compliance(
            requirement.stable_id,
            status=data.get('status'),
            comment=data.get('comment'),
            evidence_url=data.get('evidence_url'),
        )
        return saved(requirement_view(requirement))

    @app.route('/api/requirements/<code>/tags/<tag_id>', methods=['POST'])
    def tag_requirement(code, tag_id):
        requirement = manager.require_code(code)
        manager.tag_requirement(requirement.stable_id, tag_id)
        return saved(requirement_view(requirement))

    @app.route('/api/requirements/<code>/tags/<tag_id>', methods=['DELETE'])
    def untag_requirement(code, tag_id):
        requirement = manager.require_code(code)
        manager.untag_requirement(requirement.stable_id, tag_id)
        return saved(requirement_view(requirement))

    # Tags

    @app.route('/api/tags')
    def list_tags():
        return jsonify([
            dict(tag.to_dict(), usage=manager.usage_count(tag.id))
            for tag in manager.tags.tags()
        ])

    @app.route('/api/tags', methods=['POST'])
    def create_tag():
        data = _payload()
        tag = manager.create_tag(data.get('name', ''), data.get('color', '#3b82f6'),
                                 data.get('description', ''))
        return saved(tag.to_dict(), 201)

    @app.route('/api/tags/<tag_id>', methods=['PATCH'])
    def update_tag(tag_id):
        data = _payload()
        current = manager.tags.get(tag_id)
        if current is None:
            raise NotFoundError("Tag", tag_id)
        tag = manager.rename_tag(
            tag_id,
            data.get('name', current.name),
            data.get('color', current.color),
            data.get('description', current.description),
        )
        return saved(tag.to_dict())

    @app.route('/api/tags/<tag_id>', methods=['DELETE'])
    def delete_tag(tag_id):
        usage = manager.delete_tag(tag_id)
        return saved({"deleted": tag_id, "usage": usage})

    # Projects

    @app.route('/api/projects')
    def list_projects():
        return jsonify([project_view(p) for p in manager.board.projects()])

    @app.route('/api/projects', methods=['POST'])
    def create_project():
        data = _payload()
        project = manager.add_project(data.get('name', ''), data.get('description', ''),
                                      data.get('status') or 'planning')
        return saved(project_view(project), 201)

    @app.route('/api/projects/<project_id>')
    def get_project(project_id):
        project = manager.board.require_project(project_id)
        body = project_view(project)
        body["tasks"] = [t.to_dict() for t in manager.board.tasks(project_id)]
        body["risks"] = [r.to_dict() for r in manager.board.risks(project_id)]
        return jsonify(body)

    @app.route('/api/projects/<project_id>', methods=['PATCH'])
    def update_project(project_id):
        data = _payload()
        project = manager.update_project(
            project_id,
            name=data.get('name'),
            description=data.get('description'),
            status=data.get('status'),
        )
        return saved(project_view(project))

    @app.route('/api/projects/<project_id>', methods=['DELETE'])
    def delete_project(project_id):
        manager.delete_project(project_id, strict=True)
        return saved({"deleted": project_id})

    @app.route('/api/projects/<project_id>/requirements/<code>', methods=['POST'])
    def link_requirement(project_id, code):
        requirement = manager.require_code(code)
        manager.link_requirement(project_id, requirement.stable_id)
        return saved(project_view(manager.board.require_project(project_id)))

    @app.route('/api/projects/<project_id>/requirements/<code>', methods=['DELETE'])
    def unlink_requirement(project_id, code):
        requirement = manager.require_code(code)
        manager.unlink_requirement(project_id, requirement.stable_id)
        return saved(project_view(manager.board.require_project(project_id)))

    @app.route('/api/projects/<project_id>/tasks', methods=['POST'])
    def create_task(project_id):
        data = _payload()
        task = manager.add_task(
            project_id, data.get('name', ''),
            description=data.get('description', ''),
            status=data.get('status') or 'pending',
            assignee=data.get('assignee', ''),
            due_date=data.get('due_date'),
        )
        return saved(task.to_dict(), 201)

    @app.route('/api/projects/<project_id>/risks', methods=['POST'])
    def create_risk(project_id):
        data = _payload()
        risk = manager.add_risk(
            project_id, data.get('name', ''),
            description=data.get('description', ''),
            likelihood=data.get('likelihood') or 'low',
            impact=data.get('impact') or 'low',
            mitigation=data.get('mitigation', ''),
        )
        return saved(risk.to_dict(), 201)

    @app.route('/api/tasks/<task_id>/complete', methods=['POST'])
    def complete_task(task_id):
        return saved(manager.mark_task_complete(task_id).to_dict())

    @app.route('/api/tasks/<task_id>/incomplete', methods=['POST'])
    def reopen_task(task_id):
        return saved(manager.mark_task_incomplete(task_id).to_dict())

    @app.route('/api/tasks/<task_id>', methods=['DELETE'])
    def delete_task(task_id):
        manager.delete_task(task_id, strict=True)
        return saved({"deleted": task_id})

    @app.route('/api/risks/<risk_id>', methods=['DELETE'])
    def delete_risk(risk_id):
        manager.delete_risk(risk_id, strict=True)
        return saved({"deleted": risk_id})

    # Aggregates

    @app.route('/api/stats')
    def stats():
        return jsonify(manager.dashboard_stats())

    @app.route('/api/essential-eight')
    def essential_eight():
        return jsonify(manager.essential_eight_summary().to_dict())

    @app.route('/api/search')
    def search_all():
        return jsonify(manager.search(request.args.get('q', '')))

    # Bulk data

    @app.route('/api/export')
    def export_data():
        return jsonify(manager.export_snapshot())

    @app.route('/api/import', methods=['POST'])
    def import_data():
        payload = request.get_json(silent=True)
        if payload is None:
            raise FormatError("Import body must be JSON")
        manager.import_snapshot(payload)
        return saved({"imported": True})

    @app.route('/api/clear', methods=['POST'])
    def clear_data():
        manager.clear_all_data()
        return saved({"cleared": True})

    # Each request reads and writes the stores under the manager lock
    for endpoint, view in list(app.view_functions.items()):
        if endpoint != "static":
            app.view_functions[endpoint] = _locked(manager, view)

    return app
