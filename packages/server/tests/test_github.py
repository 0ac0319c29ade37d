"""Tests for GitHub connections, task links and the webhook receiver."""
import json

import pytest
from httpx import AsyncClient

from sampha.config import settings
from sampha.webhook_security import sign_payload, verify_github_signature

SECRET = "test-webhook-secret"
REPO = "acme/rocket"


def test_signature_verification():
    body = b'{"zen": "Keep it logically awesome."}'
    header = sign_payload(body, SECRET)
    assert header.startswith("sha256=")
    assert verify_github_signature(body, header, SECRET)
    assert not verify_github_signature(body, header, "other-secret")
    assert not verify_github_signature(body + b" ", header, SECRET)
    assert not verify_github_signature(body, None, SECRET)
    assert not verify_github_signature(body, header.replace("sha256=", "sha1="), SECRET)


async def deliver(client: AsyncClient, event: str, payload: dict, secret: str = SECRET):
    body = json.dumps(payload).encode()
    return await client.post(
        "/v1/webhooks/github",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "delivery-1",
            "X-Hub-Signature-256": sign_payload(body, secret),
        },
    )


async def link_task(client: AsyncClient, user, task, number: int = 42, type: str = "issue"):
    kind = "issues" if type == "issue" else "pull"
    response = await client.post(
        f"/v1/tasks/{task['id']}/github/links",
        json={
            "type": type,
            "repo": REPO,
            "externalId": str(number),
            "url": f"https://github.com/{REPO}/{kind}/{number}",
        },
        headers=user["headers"],
    )
    assert response.status_code == 200, response.text
    return response.json()


def comment_payload(action: str, number: int = 42, comment_id: int = 900, body: str = "Looks good"):
    return {
        "action": action,
        "repository": {"full_name": REPO},
        "issue": {"number": number},
        "comment": {
            "id": comment_id,
            "body": body,
            "created_at": "2025-10-09T10:00:00Z",
            "user": {
                "login": "octocat",
                "avatar_url": "https://avatars.githubusercontent.com/u/1",
                "html_url": "https://github.com/octocat",
            },
        },
    }


# ─── Connections ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connection_upsert(client: AsyncClient, alice, bob, workspace):
    url = f"/v1/workspaces/{workspace['id']}/github/connections"
    response = await client.put(
        url, json={"installationId": 7, "repositories": [REPO, REPO]}, headers=alice["headers"]
    )
    assert response.status_code == 200
    first = response.json()
    assert first["repositories"] == [REPO]

    response = await client.put(
        url, json={"installationId": 7, "repositories": ["acme/other"]}, headers=alice["headers"]
    )
    assert response.json()["id"] == first["id"]

    response = await client.get(url, headers=bob["headers"])
    assert [c["repositories"] for c in response.json()] == [["acme/other"]]

    # Members cannot manage installations
    response = await client.put(url, json={"installationId": 8}, headers=bob["headers"])
    assert response.status_code == 403
    response = await client.delete(
        f"/v1/github/connections/{first['id']}", headers=bob["headers"]
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/v1/github/connections/{first['id']}", headers=alice["headers"]
    )
    assert response.status_code == 200
    response = await client.get(url, headers=alice["headers"])
    assert response.json() == []


# ─── Links ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_remove_link(client: AsyncClient, alice, bob, make_task):
    task = await make_task()
    link = await link_task(client, bob, task)
    assert link["status"] == "open"
    assert link["repo"] == REPO

    response = await client.post(
        f"/v1/tasks/{task['id']}/github/links",
        json={"type": "issue", "repo": REPO, "externalId": "42", "url": "https://x"},
        headers=alice["headers"],
    )
    assert response.status_code == 409

    response = await client.post(
        f"/v1/tasks/{task['id']}/github/links",
        json={"type": "issue", "repo": "not a repo", "externalId": "1", "url": "https://x"},
        headers=alice["headers"],
    )
    assert response.status_code == 422

    response = await client.get(f"/v1/tasks/{task['id']}", headers=alice["headers"])
    assert [item["id"] for item in response.json()["github_links"]] == [link["id"]]

    response = await client.get(f"/v1/tasks/{task['id']}/activities", headers=alice["headers"])
    assert "github_linked" in {a["action"] for a in response.json()}

    response = await client.delete(f"/v1/github/links/{link['id']}", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["deleted"] == {"github_links": 1}

    response = await client.get(f"/v1/tasks/{task['id']}/github/links", headers=alice["headers"])
    assert response.json() == []


@pytest.mark.asyncio
async def test_link_requires_membership(client: AsyncClient, carol, make_task):
    task = await make_task()
    response = await client.get(f"/v1/tasks/{task['id']}/github/links", headers=carol["headers"])
    assert response.status_code == 403


# ─── Webhook ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client: AsyncClient):
    response = await deliver(client, "ping", {"zen": "hi"}, secret="wrong")
    assert response.status_code == 401

    response = await client.post(
        "/v1/webhooks/github", content=b"{}", headers={"X-GitHub-Event": "ping"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_webhook_disabled_without_secret(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "github_webhook_secret", "")
    response = await deliver(client, "ping", {"zen": "hi"})
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_webhook_bad_json(client: AsyncClient):
    body = b"not json"
    response = await client.post(
        "/v1/webhooks/github",
        content=body,
        headers={"X-GitHub-Event": "issues", "X-Hub-Signature-256": sign_payload(body, SECRET)},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_rejects_non_object_json(client: AsyncClient):
    body = b"[1, 2]"
    response = await client.post(
        "/v1/webhooks/github",
        content=body,
        headers={"X-GitHub-Event": "issues", "X-Hub-Signature-256": sign_payload(body, SECRET)},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Payload must be a JSON object"


@pytest.mark.asyncio
async def test_webhook_ping_and_ignored_events(client: AsyncClient):
    response = await deliver(client, "ping", {"zen": "hi"})
    assert response.json() == {"status": "pong"}

    response = await deliver(client, "push", {"repository": {"full_name": REPO}})
    assert response.json() == {"status": "ignored", "event": "push"}

    response = await deliver(client, "issues", {"action": "closed"})
    assert response.json()["status"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_syncs_issue_state(client: AsyncClient, alice, make_task):
    task = await make_task()
    link = await link_task(client, alice, task)
    # A pull request with the same number must not be touched by issue events
    pr_link = await link_task(client, alice, await make_task(title="PR"), type="pull_request")

    response = await deliver(
        client,
        "issues",
        {"action": "closed", "repository": {"full_name": REPO}, "issue": {"number": 42, "state": "closed"}},
    )
    assert response.status_code == 200
    assert response.json()["links"] == 1

    response = await client.get(f"/v1/tasks/{task['id']}/github/links", headers=alice["headers"])
    assert response.json()[0]["status"] == "closed"
    assert response.json()[0]["last_synced_at"] >= link["last_synced_at"]

    response = await client.get(
        f"/v1/tasks/{pr_link['task_id']}/github/links", headers=alice["headers"]
    )
    assert response.json()[0]["status"] == "open"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "pull_request,expected",
    [
        ({"state": "open", "draft": True}, "draft"),
        ({"state": "open", "draft": False}, "open"),
        ({"state": "closed", "merged": True}, "merged"),
        ({"state": "closed", "merged": False}, "closed"),
    ],
)
async def test_webhook_syncs_pull_request_state(
    client: AsyncClient, alice, make_task, pull_request, expected
):
    task = await make_task()
    await link_task(client, alice, task, number=7, type="pull_request")

    response = await deliver(
        client,
        "pull_request",
        {"repository": {"full_name": REPO}, "pull_request": {"number": 7, **pull_request}},
    )
    assert response.json()["links"] == 1

    response = await client.get(f"/v1/tasks/{task['id']}/github/links", headers=alice["headers"])
    assert response.json()[0]["status"] == expected


@pytest.mark.asyncio
async def test_webhook_mirrors_comments(client: AsyncClient, alice, make_task):
    task = await make_task()
    link = await link_task(client, alice, task)
    comments_url = f"/v1/github/links/{link['id']}/comments"

    await deliver(client, "issue_comment", comment_payload("created"))
    # Redelivery does not duplicate
    await deliver(client, "issue_comment", comment_payload("created"))

    response = await client.get(comments_url, headers=alice["headers"])
    [comment] = response.json()
    assert comment["external_comment_id"] == "900"
    assert comment["body"] == "Looks good"
    assert comment["author"]["login"] == "octocat"

    await deliver(client, "issue_comment", comment_payload("edited", body="Ship it"))
    response = await client.get(comments_url, headers=alice["headers"])
    assert [c["body"] for c in response.json()] == ["Ship it"]

    await deliver(client, "issue_comment", comment_payload("deleted"))
    response = await client.get(comments_url, headers=alice["headers"])
    assert response.json() == []


@pytest.mark.asyncio
async def test_deleting_task_removes_mirrored_comments(client: AsyncClient, alice, make_task):
    task = await make_task()
    link = await link_task(client, alice, task)
    await deliver(client, "issue_comment", comment_payload("created"))

    response = await client.delete(f"/v1/tasks/{task['id']}", headers=alice["headers"])
    assert response.status_code == 200
    deleted = response.json()["deleted"]
    assert deleted["github_links"] == 1
    assert deleted["external_comments"] == 1

    response = await client.get(f"/v1/github/links/{link['id']}/comments", headers=alice["headers"])
    assert response.status_code == 404
