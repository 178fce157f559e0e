"""
Authorization gate: role and ownership rules applied before every operation.

``authorize`` is a pure decision; ``require`` turns a denial into the
matching AuthError so services can call it as a guard.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from labbook.core.exceptions import ForbiddenError, UnauthenticatedError
from labbook.core.security import Principal

UNAUTHENTICATED = "Unauthenticated"
FORBIDDEN = "Forbidden"


class Rule(str, enum.Enum):
    AUTHENTICATED = "RequireAuthenticated"
    ADMIN = "RequireAdmin"
    SELF_OR_ADMIN = "RequireSelfOrAdmin"
    OWNER_OR_ADMIN = "RequireOwnerOrAdmin"


class Operation(str, enum.Enum):
    # Bookings
    CREATE_BOOKING = "create_booking"
    EXTEND_BOOKING = "extend_booking"
    CANCEL_BOOKING = "cancel_booking"
    LIST_BOOKINGS = "list_bookings"
    LIST_USER_BOOKINGS = "list_user_bookings"
    # Servers
    VIEW_SERVERS = "view_servers"
    CREATE_SERVER = "create_server"
    UPDATE_SERVER = "update_server"
    DELETE_SERVER = "delete_server"
    # Users
    VIEW_USER = "view_user"
    LIST_USERS = "list_users"
    CREATE_USER = "create_user"
    DELETE_USER = "delete_user"
    TOGGLE_ADMIN = "toggle_admin"
    # Email digest
    MANAGE_EMAIL = "manage_email"


RULES: dict[Operation, Rule] = {
    Operation.CREATE_BOOKING: Rule.SELF_OR_ADMIN,
    Operation.EXTEND_BOOKING: Rule.OWNER_OR_ADMIN,
    Operation.CANCEL_BOOKING: Rule.OWNER_OR_ADMIN,
    Operation.LIST_BOOKINGS: Rule.ADMIN,
    Operation.LIST_USER_BOOKINGS: Rule.SELF_OR_ADMIN,
    Operation.VIEW_SERVERS: Rule.AUTHENTICATED,
    Operation.CREATE_SERVER: Rule.ADMIN,
    Operation.UPDATE_SERVER: Rule.ADMIN,
    Operation.DELETE_SERVER: Rule.ADMIN,
    Operation.VIEW_USER: Rule.SELF_OR_ADMIN,
    Operation.LIST_USERS: Rule.ADMIN,
    Operation.CREATE_USER: Rule.ADMIN,
    Operation.DELETE_USER: Rule.ADMIN,
    Operation.TOGGLE_ADMIN: Rule.ADMIN,
    Operation.MANAGE_EMAIL: Rule.ADMIN,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = Decision(allowed=True)


def authorize(
    principal: Optional[Principal],
    operation: Operation,
    resource_owner_id: Optional[str] = None,
) -> Decision:
    if principal is None:
        return Decision(allowed=False, reason=UNAUTHENTICATED)

    rule = RULES[operation]
    if rule is Rule.AUTHENTICATED or principal.is_admin:
        return ALLOWED

    if rule is Rule.ADMIN:
        return Decision(allowed=False, reason=FORBIDDEN)

    # SELF_OR_ADMIN / OWNER_OR_ADMIN: the resource must belong to the caller.
    if resource_owner_id is not None and resource_owner_id == principal.id:
        return ALLOWED
    return Decision(allowed=False, reason=FORBIDDEN)


def require(
    principal: Optional[Principal],
    operation: Operation,
    resource_owner_id: Optional[str] = None,
) -> Principal:
    decision = authorize(principal, operation, resource_owner_id)
    if decision.allowed:
        return principal
    if decision.reason == UNAUTHENTICATED:
        raise UnauthenticatedError()
    if RULES[operation] is Rule.ADMIN:
        raise ForbiddenError("Admin access required")
    raise ForbiddenError(f"Not allowed to {operation.value.replace('_', ' ')}")
