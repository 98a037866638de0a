"""Catalog roles and the permission checks built on them."""
from __future__ import annotations

import enum
from typing import Optional, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User


class RoleCode(str, enum.Enum):
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    REVIEWER = "REVIEWER"
    VIEWER = "VIEWER"


ROLE_DISPLAY_TO_CODE: Dict[str, str] = {
    "admin": RoleCode.ADMIN.value,
    "administrator": RoleCode.ADMIN.value,
    "editor": RoleCode.EDITOR.value,
    "catalog editor": RoleCode.EDITOR.value,
    "catalog_editor": RoleCode.EDITOR.value,
    "reviewer": RoleCode.REVIEWER.value,
    "viewer": RoleCode.VIEWER.value,
}


def normalize_role_code(value: str | None) -> Optional[str]:
    if not value:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    upper = normalized.upper().replace(" ", "_")
    if upper in RoleCode.__members__:
        return RoleCode[upper].value
    return ROLE_DISPLAY_TO_CODE.get(normalized.lower())


def get_user_role_code(user: "User") -> Optional[str]:
    return normalize_role_code(user.role)


def is_admin(user: "User") -> bool:
    return get_user_role_code(user) == RoleCode.ADMIN.value


def can_edit_catalogs(user: "User") -> bool:
    return get_user_role_code(user) in {RoleCode.ADMIN.value, RoleCode.EDITOR.value}


def can_review(user: "User") -> bool:
    return get_user_role_code(user) in {RoleCode.ADMIN.value, RoleCode.REVIEWER.value}
