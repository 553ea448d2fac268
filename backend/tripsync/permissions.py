"""Role resolution for trips.

Every trip route funnels its access decision through :func:`role_of` and the
``ensure_*`` helpers below, so the owner/editor/viewer rules live in one place.
"""

import secrets
from enum import Enum

from .errors import NotFound, PermissionDenied
from .models.models import MemberRole, Trip


class Role(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"


_RANK = {Role.NONE: 0, Role.VIEWER: 1, Role.EDITOR: 2, Role.OWNER: 3}


def role_of(trip: Trip, username: str | None) -> Role:
    if not username:
        return Role.NONE
    if trip.user == username:
        return Role.OWNER

    best = Role.NONE
    for member in trip.memberships:
        if member.user != username:
            continue
        role = Role(MemberRole(member.role).value)
        # Ownership only comes from Trip.user, a stray owner record cannot mint a second owner
        if role == Role.OWNER:
            role = Role.EDITOR
        if _RANK[role] > _RANK[best]:
            best = role
    return best


def can_manage_membership(trip: Trip, username: str | None) -> bool:
    return role_of(trip, username) == Role.OWNER


def can_edit_content(trip: Trip, username: str | None) -> bool:
    return role_of(trip, username) in (Role.OWNER, Role.EDITOR)


def can_read(trip: Trip, username: str | None, share_token: str | None = None) -> bool:
    if role_of(trip, username) != Role.NONE:
        return True
    return has_valid_share_token(trip, share_token)


def has_valid_share_token(trip: Trip, share_token: str | None) -> bool:
    if not (trip.share_enabled and trip.share_token and share_token):
        return False
    return secrets.compare_digest(trip.share_token, share_token)


def _ensure(trip: Trip, username: str, allowed: tuple[Role, ...]) -> Role:
    role = role_of(trip, username)
    if role == Role.NONE:
        raise NotFound()
    if role not in allowed:
        raise PermissionDenied()
    return role


def ensure_can_read(trip: Trip, username: str) -> Role:
    return _ensure(trip, username, (Role.OWNER, Role.EDITOR, Role.VIEWER))


def ensure_can_edit(trip: Trip, username: str) -> Role:
    return _ensure(trip, username, (Role.OWNER, Role.EDITOR))


def ensure_can_manage(trip: Trip, username: str) -> Role:
    return _ensure(trip, username, (Role.OWNER,))
