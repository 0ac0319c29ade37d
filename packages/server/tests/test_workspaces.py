"""Integration tests for workspaces router."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_workspace_seeds_statuses(client: AsyncClient, alice):
    response = await client.post(
        "/v1/workspaces/",
        json={"name": "Solo", "slug": "solo", "type": "private"},
        headers=alice["headers"],
    )
    assert response.status_code == 200
    ws = response.json()
    assert ws["id"].startswith("ws_")
    assert ws["role"] == "admin"
    assert ws["created_by"] == alice["id"]

    response = await client.get(
        f"/v1/workspaces/{ws['id']}/statuses", headers=alice["headers"]
    )
    statuses = response.json()
    assert [s["name"] for s in statuses] == ["todo", "in_progress", "done"]
    assert [s["is_terminal"] for s in statuses] == [False, False, True]


@pytest.mark.asyncio
async def test_create_workspace_slug_taken(client: AsyncClient, alice, bob, workspace):
    response = await client.post(
        "/v1/workspaces/",
        json={"name": "Other Acme", "slug": "acme"},
        headers=bob["headers"],
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Workspace slug already exists"


@pytest.mark.asyncio
async def test_list_workspaces_with_role(client: AsyncClient, alice, bob, carol, workspace):
    response = await client.get("/v1/workspaces/", headers=alice["headers"])
    assert [(w["slug"], w["role"]) for w in response.json()] == [("acme", "admin")]

    response = await client.get("/v1/workspaces/", headers=bob["headers"])
    assert [(w["slug"], w["role"]) for w in response.json()] == [("acme", "member")]

    response = await client.get("/v1/workspaces/", headers=carol["headers"])
    assert response.json() == []


@pytest.mark.asyncio
async def test_get_workspace_requires_membership(client: AsyncClient, bob, carol, workspace):
    response = await client.get(f"/v1/workspaces/{workspace['id']}", headers=bob["headers"])
    assert response.status_code == 200

    response = await client.get(
        f"/v1/workspaces/{workspace['id']}", headers=carol["headers"]
    )
    assert response.status_code == 403
    assert response.json()["detail"] == (
        "You must be a workspace member to perform this action"
    )

    response = await client.get("/v1/workspaces/ws_missing", headers=bob["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_by_slug(client: AsyncClient, bob, workspace):
    response = await client.get("/v1/workspaces/by-slug/acme", headers=bob["headers"])
    assert response.status_code == 200
    assert response.json()["id"] == workspace["id"]

    response = await client.get("/v1/workspaces/by-slug/nope", headers=bob["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_workspace_admin_only(client: AsyncClient, alice, bob, workspace):
    url = f"/v1/workspaces/{workspace['id']}"

    response = await client.patch(url, json={"name": "Nope"}, headers=bob["headers"])
    assert response.status_code == 403
    assert response.json()["detail"] == (
        "You must be a workspace admin to perform this action"
    )

    # Keeping its own slug is not a conflict
    response = await client.patch(
        url, json={"name": "Acme Inc", "slug": "acme"}, headers=alice["headers"]
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Acme Inc"

    # No fields: no-op
    response = await client.patch(url, json={}, headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["name"] == "Acme Inc"


@pytest.mark.asyncio
async def test_update_workspace_slug_conflict(client: AsyncClient, alice, workspace):
    await client.post(
        "/v1/workspaces/", json={"name": "Beta", "slug": "beta"}, headers=alice["headers"]
    )
    response = await client.patch(
        f"/v1/workspaces/{workspace['id']}", json={"slug": "beta"}, headers=alice["headers"]
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_members_listing_includes_users(client: AsyncClient, alice, bob, workspace):
    response = await client.get(
        f"/v1/workspaces/{workspace['id']}/members", headers=bob["headers"]
    )
    assert response.status_code == 200
    members = {m["user_id"]: m for m in response.json()}
    assert members[alice["id"]]["role"] == "admin"
    assert members[bob["id"]]["role"] == "member"
    assert members[bob["id"]]["user"]["name"] == "Bob"


@pytest.mark.asyncio
async def test_add_member_errors(client: AsyncClient, alice, bob, carol, workspace):
    url = f"/v1/workspaces/{workspace['id']}/members"

    response = await client.post(url, json={"userId": bob["id"]}, headers=alice["headers"])
    assert response.status_code == 409

    response = await client.post(url, json={"userId": "usr_nope"}, headers=alice["headers"])
    assert response.status_code == 404

    response = await client.post(url, json={"userId": carol["id"]}, headers=bob["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_last_admin_is_protected(client: AsyncClient, alice, bob, workspace):
    base = f"/v1/workspaces/{workspace['id']}/members"

    response = await client.patch(
        f"{base}/{alice['id']}", json={"role": "member"}, headers=alice["headers"]
    )
    assert response.status_code == 400

    response = await client.delete(f"{base}/{alice['id']}", headers=alice["headers"])
    assert response.status_code == 400

    # With a second admin, demotion works
    response = await client.patch(
        f"{base}/{bob['id']}", json={"role": "admin"}, headers=alice["headers"]
    )
    assert response.status_code == 200
    response = await client.patch(
        f"{base}/{alice['id']}", json={"role": "member"}, headers=alice["headers"]
    )
    assert response.status_code == 200
    assert response.json()["role"] == "member"


@pytest.mark.asyncio
async def test_remove_member(client: AsyncClient, alice, bob, workspace):
    base = f"/v1/workspaces/{workspace['id']}/members"

    response = await client.delete(f"{base}/{bob['id']}", headers=alice["headers"])
    assert response.status_code == 200

    response = await client.delete(f"{base}/{bob['id']}", headers=alice["headers"])
    assert response.status_code == 404

    response = await client.get(f"/v1/workspaces/{workspace['id']}", headers=bob["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_workspace_state_defaults_and_upsert(client: AsyncClient, bob, workspace):
    url = f"/v1/workspaces/{workspace['id']}/state"

    response = await client.get(url, headers=bob["headers"])
    assert response.status_code == 200
    assert response.json()["last_view"] == "timeline"
    assert response.json()["collapsed_project_ids"] == []

    response = await client.put(
        url,
        json={"lastView": "kanban", "collapsedProjectIds": ["proj_a", "proj_a", "proj_b"]},
        headers=bob["headers"],
    )
    assert response.status_code == 200
    data = response.json()
    assert data["last_view"] == "kanban"
    assert data["collapsed_project_ids"] == ["proj_a", "proj_b"]

    response = await client.put(url, json={"timelineZoomLevel": 3}, headers=bob["headers"])
    data = response.json()
    assert data["timeline_zoom_level"] == 3
    assert data["last_view"] == "kanban"


@pytest.mark.asyncio
async def test_workspace_state_last_viewed_project_must_be_local(
    client: AsyncClient, alice, bob, workspace, project
):
    url = f"/v1/workspaces/{workspace['id']}/state"

    response = await client.put(
        url, json={"lastViewedProjectId": "proj_doesnotexist"}, headers=bob["headers"]
    )
    assert response.status_code == 400

    response = await client.post(
        "/v1/workspaces/",
        json={"name": "Other", "slug": "other", "type": "shared"},
        headers=alice["headers"],
    )
    other = response.json()
    response = await client.post(
        f"/v1/workspaces/{other['id']}/projects",
        json={"name": "Elsewhere"},
        headers=alice["headers"],
    )
    response = await client.put(
        url, json={"lastViewedProjectId": response.json()["id"]}, headers=alice["headers"]
    )
    assert response.status_code == 400

    response = await client.get(url, headers=bob["headers"])
    assert response.json()["last_viewed_project_id"] is None

    response = await client.put(
        url, json={"lastViewedProjectId": project["id"]}, headers=bob["headers"]
    )
    assert response.status_code == 200
    assert response.json()["last_viewed_project_id"] == project["id"]

    response = await client.put(url, json={"lastViewedProjectId": None}, headers=bob["headers"])
    assert response.status_code == 200
    assert response.json()["last_viewed_project_id"] is None


@pytest.mark.asyncio
async def test_blank_names_are_rejected(client: AsyncClient, alice, workspace):
    response = await client.post(
        "/v1/workspaces/",
        json={"name": "   ", "slug": "blank", "type": "shared"},
        headers=alice["headers"],
    )
    assert response.status_code == 422

    response = await client.patch(
        f"/v1/workspaces/{workspace['id']}", json={"name": " \t "}, headers=alice["headers"]
    )
    assert response.status_code == 422

    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/statuses", json={"name": "  "}, headers=alice["headers"]
    )
    assert response.status_code == 422

    response = await client.patch(
        f"/v1/workspaces/{workspace['id']}", json={"name": "  Acme Corp  "}, headers=alice["headers"]
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Acme Corp"


@pytest.mark.asyncio
async def test_status_config_crud(client: AsyncClient, alice, bob, workspace, make_task):
    base = f"/v1/workspaces/{workspace['id']}/statuses"

    response = await client.post(base, json={"name": "review"}, headers=bob["headers"])
    assert response.status_code == 403

    response = await client.post(
        base, json={"name": "review", "color": "violet"}, headers=alice["headers"]
    )
    assert response.status_code == 200
    review = response.json()
    assert review["order"] == 3

    response = await client.post(base, json={"name": "review"}, headers=alice["headers"])
    assert response.status_code == 409

    # Renaming a status carries its tasks along
    task = await make_task(status="review")
    response = await client.patch(
        f"{base}/{review['id']}", json={"name": "in_review"}, headers=alice["headers"]
    )
    assert response.status_code == 200
    response = await client.get(f"/v1/tasks/{task['id']}", headers=alice["headers"])
    assert response.json()["status"] == "in_review"

    # A status in use cannot be deleted
    response = await client.delete(f"{base}/{review['id']}", headers=alice["headers"])
    assert response.status_code == 400

    await client.delete(f"/v1/tasks/{task['id']}", headers=alice["headers"])
    response = await client.delete(f"{base}/{review['id']}", headers=alice["headers"])
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_workspace(client: AsyncClient, alice, bob, workspace, make_task):
    await make_task()

    response = await client.delete(
        f"/v1/workspaces/{workspace['id']}", headers=bob["headers"]
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/v1/workspaces/{workspace['id']}", headers=alice["headers"]
    )
    assert response.status_code == 200
    deleted = response.json()["deleted"]
    assert deleted["workspaces"] == 1
    assert deleted["tasks"] == 1
    assert deleted["projects"] == 1
    assert deleted["phases"] == 1
    assert deleted["workspace_members"] == 2
    assert deleted["status_configs"] == 3

    response = await client.get("/v1/workspaces/", headers=alice["headers"])
    assert response.json() == []
    response = await client.get(
        f"/v1/workspaces/{workspace['id']}", headers=alice["headers"]
    )
    assert response.status_code == 404
