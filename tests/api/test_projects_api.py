"""
Tests for project and membership endpoints.
"""
from fastapi.testclient import TestClient

from app.models.project import ProjectRole


class TestProjectCreation:
    def test_admin_creates_project(self, client: TestClient, admin_user, headers):
        response = client.post(
            "/api/projects/",
            json={"name": "  Mobile banking  ", "description": "Q3 plan"},
            headers=headers(admin_user),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Mobile banking"
        assert data["created_by"] == admin_user.id

    def test_regular_user_cannot_create_project(self, client: TestClient, creator_user, headers):
        response = client.post("/api/projects/", json={"name": "Side project"}, headers=headers(creator_user))
        assert response.status_code == 403

    def test_empty_name_is_rejected(self, client: TestClient, admin_user, headers):
        response = client.post("/api/projects/", json={"name": "   "}, headers=headers(admin_user))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestMembership:
    def test_creator_adds_member(self, client: TestClient, project, creator_user, make_user, headers):
        newcomer = make_user("newcomer@test.com")
        response = client.post(
            f"/api/projects/{project.id}/members",
            json={"user_id": newcomer.id, "role": "developer"},
            headers=headers(creator_user),
        )
        assert response.status_code == 201
        assert response.json()["role"] == "developer"
        assert response.json()["added_by"] == creator_user.id

    def test_member_cannot_add_members(self, client: TestClient, project, members, make_user, headers):
        newcomer = make_user("newcomer@test.com")
        response = client.post(
            f"/api/projects/{project.id}/members",
            json={"user_id": newcomer.id, "role": "developer"},
            headers=headers(members[ProjectRole.developer]),
        )
        assert response.status_code == 403

    def test_duplicate_member_is_rejected(self, client: TestClient, project, creator_user, members, headers):
        response = client.post(
            f"/api/projects/{project.id}/members",
            json={"user_id": members[ProjectRole.developer].id, "role": "ux_planning"},
            headers=headers(creator_user),
        )
        assert response.status_code == 400

    def test_members_can_list_members(self, client: TestClient, project, members, headers):
        response = client.get(f"/api/projects/{project.id}/members", headers=headers(members[ProjectRole.ux_planning]))
        assert response.status_code == 200
        assert {member["role"] for member in response.json()} == {role.value for role in ProjectRole}

    def test_outsider_cannot_list_members(self, client: TestClient, project, outsider_user, headers):
        response = client.get(f"/api/projects/{project.id}/members", headers=headers(outsider_user))
        assert response.status_code == 403


class TestEffectivePermissions:
    def test_member_permissions(self, client: TestClient, project, members, headers):
        response = client.get(
            f"/api/projects/{project.id}/permissions", headers=headers(members[ProjectRole.developer])
        )
        data = response.json()
        assert data["project_role"] == "developer"
        assert data["is_project_creator"] is False
        assert data["permissions"]["can_create_document"] is True
        assert data["permissions"]["can_manage_members"] is False

    def test_creator_permissions(self, client: TestClient, project, creator_user, headers):
        data = client.get(f"/api/projects/{project.id}/permissions", headers=headers(creator_user)).json()
        assert data["project_role"] is None
        assert data["is_project_creator"] is True
        assert data["permissions"]["can_manage_members"] is True
        assert data["permissions"]["can_delete_project"] is False
