"""
api/routes/v1/roles.py -- Role administration and permission checks.

Routes:
  GET    /api/v1/roles                     -- role names (requires role:read)
  GET    /api/v1/roles/{name}/permissions  -- a role's permissions (requires role:read)
  PUT    /api/v1/roles/{name}              -- create or replace a role (requires role:write)
  DELETE /api/v1/roles/{name}              -- remove a role (requires role:write)
  POST   /api/v1/authz/check               -- may *my* role do this? (requires a valid token)

Validation: resource/action arrive as plain strings and are validated only by
the PermissionRegistry. InvalidResource / InvalidAction -> 422,
RoleNotFound -> 404, PermissionDenied -> 403 (see api/main.py handlers).

[M4] The configured ADMIN_ROLE cannot be deleted over HTTP, and a PUT that
replaces it must keep role:write -- either change would leave no account
able to administer roles.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import PermissionBody, PermissionCheckRequest, PermissionCheckResponse, RoleBody, RoleResponse
from auth.dependencies import get_current_claims, require_permission
from auth.errors import PermissionDenied, RoleNotFound
from auth.registry import PermissionRegistry
from core.models import ActionType, Permission, ResourceType, Role

router = APIRouter()

_can_read_roles = require_permission(ResourceType.ROLE, ActionType.READ)
_can_write_roles = require_permission(ResourceType.ROLE, ActionType.WRITE)


@router.get("/roles", response_model=list[str])
def list_roles(request: Request, claims: dict[str, Any] = Depends(_can_read_roles)) -> list[str]:
    registry: PermissionRegistry = request.app.state.registry
    return registry.role_names()


@router.get("/roles/{name}/permissions", response_model=RoleResponse)
def get_role_permissions(
    request: Request,
    name: str,
    claims: dict[str, Any] = Depends(_can_read_roles),
) -> RoleResponse:
    registry: PermissionRegistry = request.app.state.registry
    permissions = registry.get_role_permissions(name)
    return _role_to_response(name, permissions)


@router.put("/roles/{name}", response_model=RoleResponse)
def put_role(
    request: Request,
    name: str,
    body: RoleBody,
    claims: dict[str, Any] = Depends(_can_write_roles),
) -> RoleResponse:
    """Create or fully replace a role. Nothing changes if any permission is invalid."""
    if name == request.app.state.settings.admin_role and not _keeps_role_write(body):  # [M4]
        raise HTTPException(
            status_code=400,
            detail={"code": "protected_role", "message": "The bootstrap admin role must keep role:write."},
        )
    registry: PermissionRegistry = request.app.state.registry
    stored = registry.add_role(
        Role(
            name=name,
            type=body.type,
            description=body.description,
            permissions=[Permission(p.resource, p.action, p.description) for p in body.permissions],
        )
    )
    return _role_to_response(name, stored)


@router.delete("/roles/{name}", status_code=204)
def delete_role(
    request: Request,
    name: str,
    claims: dict[str, Any] = Depends(_can_write_roles),
) -> Response:
    """Remove a role. Deleting an unknown role is not an error."""
    if name == request.app.state.settings.admin_role:  # [M4]
        raise HTTPException(
            status_code=400,
            detail={"code": "protected_role", "message": "The bootstrap admin role cannot be deleted."},
        )
    registry: PermissionRegistry = request.app.state.registry
    registry.remove_role(name)
    return Response(status_code=204)


@router.post("/authz/check", response_model=PermissionCheckResponse)
def check_permission(
    request: Request,
    body: PermissionCheckRequest,
    claims: dict[str, Any] = Depends(get_current_claims),
) -> PermissionCheckResponse:
    """Ask the registry whether the caller's role may perform body.action on body.resource.

    An unregistered role claim is answered like any other denial.
    """
    registry: PermissionRegistry = request.app.state.registry
    role = claims["role"]
    try:
        registry.check_permission(role, body.resource, body.action)
    except RoleNotFound as exc:
        raise PermissionDenied(role, body.resource, body.action) from exc
    return PermissionCheckResponse(role=role, resource=body.resource, action=body.action, allowed=True)


def _keeps_role_write(body: RoleBody) -> bool:
    return any(
        p.resource == ResourceType.ROLE.value and p.action == ActionType.WRITE.value for p in body.permissions
    )


def _role_to_response(name: str, permissions: list[Permission]) -> RoleResponse:
    return RoleResponse(
        name=name,
        permissions=[
            PermissionBody(resource=str(p.resource), action=str(p.action), description=p.description)
            for p in permissions
        ],
    )
