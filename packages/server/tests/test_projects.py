"""Integration tests for projects and phases routers."""
import pytest
from httpx import AsyncClient

from conftest import DAY_MS


@pytest.mark.asyncio
async def test_create_project(client: AsyncClient, bob, workspace):
    """Any member can create a project."""
    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/projects",
        json={"name": "Test Project", "description": "A test project"},
        headers=bob["headers"],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["id"].startswith("proj_")
    assert data["name"] == "Test Project"
    assert data["status"] == "active"
    assert data["created_by"] == bob["id"]

    response = await client.get(
        f"/v1/projects/{data['id']}/activities", headers=bob["headers"]
    )
    assert [a["action"] for a in response.json()] == ["created"]


@pytest.mark.asyncio
async def test_create_project_non_member(client: AsyncClient, carol, workspace):
    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/projects",
        json={"name": "Sneaky"},
        headers=carol["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_project_bad_dates(client: AsyncClient, alice, workspace):
    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/projects",
        json={"name": "Backwards", "startDate": 2 * DAY_MS, "endDate": DAY_MS},
        headers=alice["headers"],
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_project(client: AsyncClient, bob, carol, project):
    response = await client.get(f"/v1/projects/{project['id']}", headers=bob["headers"])
    assert response.status_code == 200
    assert response.json()["name"] == "Launch"

    response = await client.get(f"/v1/projects/{project['id']}", headers=carol["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_project_not_found(client: AsyncClient, alice):
    response = await client.get("/v1/projects/nonexistent", headers=alice["headers"])
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found"


@pytest.mark.asyncio
async def test_list_projects_with_status_filter(client: AsyncClient, alice, workspace):
    base = f"/v1/workspaces/{workspace['id']}/projects"
    await client.post(base, json={"name": "Project 1"}, headers=alice["headers"])
    second = (
        await client.post(base, json={"name": "Project 2"}, headers=alice["headers"])
    ).json()
    await client.post(f"/v1/projects/{second['id']}/archive", headers=alice["headers"])

    response = await client.get(base, headers=alice["headers"])
    assert len(response.json()) == 2

    response = await client.get(f"{base}?status=archived", headers=alice["headers"])
    assert [p["name"] for p in response.json()] == ["Project 2"]


@pytest.mark.asyncio
async def test_update_project(client: AsyncClient, bob, project):
    response = await client.patch(
        f"/v1/projects/{project['id']}",
        json={"description": "New description", "startDate": DAY_MS},
        headers=bob["headers"],
    )
    assert response.status_code == 200
    data = response.json()
    assert data["description"] == "New description"
    assert data["start_date"] == DAY_MS
    assert data["name"] == "Launch"

    # end before the stored start
    response = await client.patch(
        f"/v1/projects/{project['id']}", json={"endDate": 0}, headers=bob["headers"]
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_project_admin_only(client: AsyncClient, alice, bob, project):
    response = await client.delete(f"/v1/projects/{project['id']}", headers=bob["headers"])
    assert response.status_code == 403

    response = await client.delete(f"/v1/projects/{project['id']}", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["deleted"]["projects"] == 1

    response = await client.get(f"/v1/projects/{project['id']}", headers=alice["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_phases_ordered(client: AsyncClient, alice, project):
    base = f"/v1/projects/{project['id']}/phases"
    first = (await client.post(base, json={"name": "Build"}, headers=alice["headers"])).json()
    second = (await client.post(base, json={"name": "Ship"}, headers=alice["headers"])).json()
    assert (first["order"], second["order"]) == (0, 1)

    await client.patch(
        f"/v1/phases/{first['id']}", json={"order": 5}, headers=alice["headers"]
    )
    response = await client.get(base, headers=alice["headers"])
    assert [p["name"] for p in response.json()] == ["Ship", "Build"]


@pytest.mark.asyncio
async def test_update_phase_bad_dates(client: AsyncClient, alice, phase):
    response = await client.patch(
        f"/v1/phases/{phase['id']}",
        json={"startDate": 2 * DAY_MS, "endDate": DAY_MS},
        headers=alice["headers"],
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_phase_removes_tasks(client: AsyncClient, alice, phase, make_task):
    task = await make_task()

    response = await client.delete(f"/v1/phases/{phase['id']}", headers=alice["headers"])
    assert response.status_code == 200
    deleted = response.json()["deleted"]
    assert deleted["phases"] == 1
    assert deleted["tasks"] == 1

    response = await client.get(f"/v1/tasks/{task['id']}", headers=alice["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_blank_project_and_phase_names_rejected(
    client: AsyncClient, alice, workspace, project, phase
):
    response = await client.post(
        f"/v1/workspaces/{workspace['id']}/projects", json={"name": "  "}, headers=alice["headers"]
    )
    assert response.status_code == 422

    response = await client.patch(
        f"/v1/projects/{project['id']}", json={"name": "\n"}, headers=alice["headers"]
    )
    assert response.status_code == 422

    response = await client.post(
        f"/v1/projects/{project['id']}/phases", json={"name": " "}, headers=alice["headers"]
    )
    assert response.status_code == 422

    response = await client.patch(
        f"/v1/phases/{phase['id']}", json={"name": "  Build  "}, headers=alice["headers"]
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Build"
