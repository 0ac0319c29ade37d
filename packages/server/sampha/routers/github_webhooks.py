"""GitHub webhook receiver.

Keeps task links in sync with their issues / pull requests and mirrors
issue comments onto the linked tasks.

Webhook URL: https://your-domain.com/v1/webhooks/github

Security:
- Verifies the HMAC-SHA256 ``X-Hub-Signature-256`` header against
  ``GITHUB_WEBHOOK_SECRET``; 503 when no secret is configured, 401 on
  mismatch.
"""
import json
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.database import get_async_session
from sampha.models import ExternalComment, GitHubLink
from sampha.services.events import publish_event
from sampha.utils import datetime_to_ms, gen_id, now_ms
from sampha.webhook_security import get_webhook_secret, verify_github_signature
from sampha.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _parse_github_time(value: Optional[str]) -> int:
    if not value:
        return now_ms()
    try:
        return datetime_to_ms(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return now_ms()


def _pull_request_status(pr: dict) -> str:
    if pr.get("merged") or pr.get("merged_at"):
        return "merged"
    if pr.get("state") == "open" and pr.get("draft"):
        return "draft"
    return pr.get("state") or "open"


async def _links_for(
    session: AsyncSession, repo: str, number, link_type: Optional[str] = None
) -> list[GitHubLink]:
    query = select(GitHubLink).where(
        GitHubLink.repo == repo, GitHubLink.external_id == str(number)
    )
    if link_type:
        query = query.where(GitHubLink.type == link_type)
    result = await session.execute(query)
    return list(result.scalars().all())


async def _sync_status(
    session: AsyncSession, repo: str, number, link_type: str, status: str
) -> list[GitHubLink]:
    links = await _links_for(session, repo, number, link_type)
    synced_at = now_ms()
    for link in links:
        link.status = status
        link.last_synced_at = synced_at
    return links


async def _sync_comment(
    session: AsyncSession, repo: str, payload: dict
) -> list[GitHubLink]:
    """Mirror an issue_comment event onto every link for that issue / PR."""
    action = payload.get("action")
    issue = payload.get("issue") or {}
    comment = payload.get("comment") or {}
    comment_id = str(comment.get("id", ""))
    if not comment_id:
        return []

    links = await _links_for(session, repo, issue.get("number"))
    for link in links:
        result = await session.execute(
            select(ExternalComment).where(
                ExternalComment.github_link_id == link.id,
                ExternalComment.external_comment_id == comment_id,
            )
        )
        existing = result.scalar_one_or_none()
        if action == "deleted":
            if existing is not None:
                await session.delete(existing)
            continue
        if existing is not None:
            existing.body = comment.get("body") or ""
            continue
        user = comment.get("user") or {}
        session.add(
            ExternalComment(
                id=gen_id("ghx_"),
                github_link_id=link.id,
                external_comment_id=comment_id,
                author={
                    "login": user.get("login"),
                    "avatar_url": user.get("avatar_url"),
                    "url": user.get("html_url"),
                },
                body=comment.get("body") or "",
                created_at=_parse_github_time(comment.get("created_at")),
            )
        )
        link.last_synced_at = now_ms()
    return links


@router.post("/github")
async def receive_github_webhook(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
    x_github_event: str = Header(..., alias="X-GitHub-Event"),
    x_github_delivery: Optional[str] = Header(None, alias="X-GitHub-Delivery"),
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
):
    """Receive, verify and apply a GitHub webhook delivery.

    Returns:
    - 200: delivery applied (or ignored for unhandled events)
    - 400: invalid JSON payload
    - 401: invalid signature
    - 503: webhook secret not configured
    """
    secret = get_webhook_secret()
    if not secret:
        logger.warning("GitHub webhook received but GITHUB_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    # Read raw body (needed for signature verification)
    raw_body = await request.body()
    if not verify_github_signature(raw_body, x_hub_signature_256, secret):
        logger.warning(f"Signature verification failed for delivery {x_github_delivery}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Payload must be a JSON object")

    if x_github_event == "ping":
        return {"status": "pong"}

    repo = (payload.get("repository") or {}).get("full_name")
    if not repo:
        return {"status": "ignored", "event": x_github_event}

    if x_github_event == "issues":
        issue = payload.get("issue") or {}
        links = await _sync_status(
            session, repo, issue.get("number"), "issue", issue.get("state") or "open"
        )
    elif x_github_event == "pull_request":
        pr = payload.get("pull_request") or {}
        links = await _sync_status(
            session, repo, pr.get("number"), "pull_request", _pull_request_status(pr)
        )
    elif x_github_event == "issue_comment":
        links = await _sync_comment(session, repo, payload)
    else:
        logger.debug(f"Ignoring GitHub event {x_github_event} ({x_github_delivery})")
        return {"status": "ignored", "event": x_github_event}

    await session.commit()

    logger.info(
        f"GitHub {x_github_event} for {repo} updated {len(links)} link(s) "
        f"(delivery {x_github_delivery})"
    )
    for link in links:
        await publish_event(
            link.workspace_id,
            "GITHUB_LINK_SYNCED",
            {"taskId": link.task_id, "linkId": link.id, "event": x_github_event},
        )
    return {"status": "ok", "event": x_github_event, "links": len(links)}
