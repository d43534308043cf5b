from __future__ import annotations

from fastapi import Header, Request

from app.config import settings
from app.extract.errors import AuthenticationError
from app.extract.interfaces import AuthContext
from app.extract.orchestrator import ExtractionPipeline
from app.services import database as db

BYPASS_TEAM_ID = "bypass"


async def get_auth_context(authorization: str | None = Header(default=None)) -> AuthContext:
    """Resolve the caller from the bearer token.

    Without DB authentication every caller is the self-hosted ``bypass`` team.
    """
    if not settings.use_db_authentication:
        return AuthContext(team_id=BYPASS_TEAM_ID, plan=settings.self_hosted_plan)

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Unauthorized: missing bearer token")

    row = await db.get_api_key_auth(token.strip())
    if row is None:
        raise AuthenticationError("Unauthorized: invalid token")
    return AuthContext(
        team_id=str(row["team_id"]),
        plan=str(row.get("plan") or "free"),
        sub_id=str(row["sub_id"]) if row.get("sub_id") else None,
    )


def get_pipeline(request: Request) -> ExtractionPipeline:
    return request.app.state.runtime.pipeline
