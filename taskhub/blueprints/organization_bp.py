"""
Organization Blueprint — tenant read/update/delete/restore.

  GET    /api/v1/organizations                 — visible organizations
  GET    /api/v1/organizations/<id>            — one organization
  PUT    /api/v1/organizations/<id>            — update (PATCH accepted too)
  DELETE /api/v1/organizations/<id>            — cascade soft delete
  PATCH  /api/v1/organizations/<id>/restore    — restore

Organizations are created through ``POST /api/v1/auth/register``.
"""

from flask import Blueprint, g

from taskhub.blueprints import (
    deleted_response,
    include_deleted_for,
    json_body,
    list_response,
    success,
)
from taskhub.middleware.jwt_auth import login_required
from taskhub.middleware.permission_required import authorize, document_loader
from taskhub.models.organization import Organization
from taskhub.services import organization_service

organization_bp = Blueprint("organization_bp", __name__, url_prefix="/api/v1")

_load = document_loader(Organization, "org_id")


@organization_bp.route("/organizations", methods=["GET"])
@login_required
@authorize("organizations", "read")
def list_organizations():
    principal = g.principal
    return list_response(organization_service.list_query(
        principal, include_deleted=include_deleted_for(principal, "organizations"),
    ))


@organization_bp.route("/organizations/<int:org_id>", methods=["GET"])
@login_required
@authorize("organizations", "read", check_scope=True, get_document=_load)
def get_organization(org_id):
    return success(g.document.to_dict())


@organization_bp.route("/organizations/<int:org_id>", methods=["PUT", "PATCH"])
@login_required
@authorize("organizations", "update", check_scope=True, get_document=_load)
def update_organization(org_id):
    organization = organization_service.update_organization(g.principal, g.document, json_body())
    return success(organization.to_dict())


@organization_bp.route("/organizations/<int:org_id>", methods=["DELETE"])
@login_required
@authorize("organizations", "delete", check_scope=True, get_document=_load)
def delete_organization(org_id):
    return deleted_response(organization_service.delete_organization(g.principal, g.document))


@organization_bp.route("/organizations/<int:org_id>/restore", methods=["PATCH"])
@login_required
@authorize("organizations", "restore", check_scope=True, get_document=_load)
def restore_organization(org_id):
    organization = organization_service.restore_organization(g.principal, g.document)
    return success(organization.to_dict())
