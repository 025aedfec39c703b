"""
Catalog Blueprint — static reference data for submission forms.

Endpoints:
    GET /api/v1/catalog/work-units
    PUT /api/v1/catalog/work-units/<unit_id>/admin     (central reviewer only)
    GET /api/v1/catalog/<request_type>/categories
    GET /api/v1/catalog/<request_type>/categories/<category>/checklist
        Checklist with urls pre-filled from the calling actor's document repository.
"""

from flask import Blueprint, jsonify
from sqlalchemy import select

from hrdesk.middleware.jwt_auth import require_actor
from hrdesk.models import db
from hrdesk.models.organization import WorkUnit
from hrdesk.services import document_catalog
from hrdesk.utils.errors import register_workflow_error_handlers
from hrdesk.utils.helpers import json_body

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/v1/catalog")
register_workflow_error_handlers(catalog_bp)


@catalog_bp.route("/work-units", methods=["GET"])
def list_work_units():
    require_actor()
    units = db.session.execute(select(WorkUnit).order_by(WorkUnit.id)).scalars().all()
    return jsonify({"items": [u.to_dict() for u in units], "total": len(units)})


@catalog_bp.route("/work-units/<int:unit_id>/admin", methods=["PUT"])
def assign_unit_admin(unit_id):
    actor = require_actor()
    data = json_body()
    unit = document_catalog.assign_unit_admin(unit_id, data.get("admin_unit_id"), actor)
    return jsonify(unit.to_dict())


@catalog_bp.route("/<request_type>/categories", methods=["GET"])
def list_categories(request_type):
    require_actor()
    categories = document_catalog.list_categories(request_type)
    return jsonify({
        "request_type": request_type,
        "categories": categories,
        "repository_keys": document_catalog.repository_keys(request_type),
    })


@catalog_bp.route("/<request_type>/categories/<category>/checklist", methods=["GET"])
def category_checklist(request_type, category):
    actor = require_actor()
    checklist = document_catalog.build_checklist(request_type, category, actor.id)
    return jsonify({"request_type": request_type, "category": category, "documents": checklist})
