"""Roles, permission checks and bearer tokens."""
import pytest

from app.core.security import create_access_token, token_subject
from app.core.roles import can_edit_catalogs, can_review, is_admin, normalize_role_code
from app.models.user import User


@pytest.mark.parametrize("raw,expected", [
    ("ADMIN", "ADMIN"),
    ("Administrator", "ADMIN"),
    ("catalog editor", "EDITOR"),
    (" Reviewer ", "REVIEWER"),
    ("", None),
    ("registrar", None),
])
def test_normalize_role_code(raw, expected):
    assert normalize_role_code(raw) == expected


def test_permissions_by_role():
    editor = User(email="e@example.edu", full_name="E", role="Catalog Editor")
    reviewer = User(email="r@example.edu", full_name="R", role="REVIEWER")
    admin = User(email="a@example.edu", full_name="A", role="ADMIN")

    assert can_edit_catalogs(editor) and not can_review(editor)
    assert can_review(reviewer) and not can_edit_catalogs(reviewer)
    assert is_admin(admin) and can_review(admin) and can_edit_catalogs(admin)


def test_display_name_role_can_create_catalog(client, db_session):
    user = User(email="dept@example.edu", full_name="Department Editor", role="catalog_editor", is_active=True)
    db_session.add(user)
    db_session.commit()

    response = client.post("/catalogs/", json={
        "name": "2026 Spring",
        "effective_date": "2026-01-10",
        "expiration_date": "2026-05-20",
    }, headers={"Authorization": f"Bearer {create_access_token(user.email)}"})
    assert response.status_code == 201


def test_token_subject():
    token = create_access_token("editor@example.edu")
    assert token_subject(token) == "editor@example.edu"
    assert token_subject(token + "x") is None
    assert token_subject(create_access_token("editor@example.edu", expires_minutes=-5)) is None
