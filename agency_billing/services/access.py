"""Role-based permissions and the per-request agency context.

Permissions are ``resource:action`` strings mapped to the agency roles
allowed to perform them. Ownership rules follow the ``*_own`` / ``*_all``
pairs: a member may act on records they created, owners and admins on any
record in the agency.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from agency_billing.errors import PermissionDeniedError
from agency_billing.models.enums import AgencyRole

_ALL = frozenset({AgencyRole.OWNER, AgencyRole.ADMIN, AgencyRole.MEMBER})
_MANAGERS = frozenset({AgencyRole.OWNER, AgencyRole.ADMIN})

PERMISSIONS: Dict[str, FrozenSet[AgencyRole]] = {
    # Invoices
    "invoice:create": _ALL,
    "invoice:view_own": _ALL,
    "invoice:view_all": _MANAGERS,
    "invoice:edit_own": _ALL,
    "invoice:edit_all": _MANAGERS,
    "invoice:delete_own": _ALL,
    "invoice:delete_all": _MANAGERS,
    "invoice:send": _ALL,
    "invoice:record_payment": _MANAGERS,
    "invoice:cancel": _MANAGERS,
    "invoice:refund": frozenset({AgencyRole.OWNER}),
    # Recurring schedules
    "recurring:view": _ALL,
    "recurring:manage": _MANAGERS,
    # Email
    "email:send": _ALL,
    "email:view_logs": _MANAGERS,
    "email:resend": _MANAGERS,
    # Agency forms
    "form:view": _ALL,
    "form:create": _MANAGERS,
    "form:edit": _MANAGERS,
    "form:delete": _MANAGERS,
    # Agency settings
    "settings:view": _MANAGERS,
    "settings:edit": _MANAGERS,
}

ROLE_HIERARCHY = {AgencyRole.OWNER: 100, AgencyRole.ADMIN: 50, AgencyRole.MEMBER: 10}


@dataclass(frozen=True)
class AgencyContext:
    """Who is acting, and in which agency.

    Attributes:
        agency_id: Agency every query is scoped to
        user_id: Acting user (recorded as ``created_by`` and in the activity log)
        role: The user's role within the agency
        is_super_admin: Platform-level access to form template management
    """

    agency_id: Optional[str]
    user_id: Optional[str]
    role: AgencyRole = AgencyRole.MEMBER
    is_super_admin: bool = False

    @classmethod
    def system(cls, agency_id: Optional[str] = None) -> "AgencyContext":
        """Context used by the cron job and CLI: full rights, no user."""
        return cls(agency_id=agency_id, user_id=None, role=AgencyRole.OWNER)


def has_permission(role: AgencyRole, permission: str) -> bool:
    """Check if a role has a specific permission (unknown permissions: no)."""
    return AgencyRole(role) in PERMISSIONS.get(permission, frozenset())


def get_permissions_for_role(role: AgencyRole) -> List[str]:
    return sorted(p for p, roles in PERMISSIONS.items() if AgencyRole(role) in roles)


def require_permission(ctx: AgencyContext, permission: str) -> None:
    """Raise PermissionDeniedError unless the context's role has the permission."""
    if not has_permission(ctx.role, permission):
        raise PermissionDeniedError(
            f"Permission denied: {permission} requires one of "
            f"{sorted(r.value for r in PERMISSIONS.get(permission, ()))}"
        )


def require_agency(ctx: AgencyContext) -> str:
    if not ctx.agency_id:
        raise PermissionDeniedError("No agency selected")
    return ctx.agency_id


def require_super_admin(ctx: AgencyContext) -> None:
    if not ctx.is_super_admin:
        raise PermissionDeniedError("Super admin access required")


def _owns(owner_id: Optional[str], user_id: Optional[str]) -> bool:
    return owner_id is not None and owner_id == user_id


def can_access_resource(
    role: AgencyRole, owner_id: Optional[str], user_id: Optional[str], resource: str
) -> bool:
    """View check: ``view_all`` sees everything, otherwise only own records."""
    if has_permission(role, f"{resource}:view_all"):
        return True
    return _owns(owner_id, user_id)


def can_modify_resource(
    role: AgencyRole, owner_id: Optional[str], user_id: Optional[str], resource: str
) -> bool:
    if has_permission(role, f"{resource}:edit_all"):
        return True
    return has_permission(role, f"{resource}:edit_own") and _owns(owner_id, user_id)


def can_delete_resource(
    role: AgencyRole, owner_id: Optional[str], user_id: Optional[str], resource: str
) -> bool:
    if has_permission(role, f"{resource}:delete_all"):
        return True
    return has_permission(role, f"{resource}:delete_own") and _owns(owner_id, user_id)


def is_role_at_least(role_a: AgencyRole, role_b: AgencyRole) -> bool:
    return ROLE_HIERARCHY[AgencyRole(role_a)] >= ROLE_HIERARCHY[AgencyRole(role_b)]
