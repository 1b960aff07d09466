"""SUPAWATCH — Notification Rule Routes.

Rules are stored and listed only; nothing here evaluates them.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from app.database import get_rule_repository
from app.models.base import CamelModel
from app.models.project_models import NotificationRule, Threshold, TriggerType
from app.storage.repositories import RuleRepository
from app.core.logging import get_logger

logger = get_logger("api.rules")

router = APIRouter(prefix="/rules", tags=["Notification Rules"])


class RuleIn(CamelModel):
    """Body for creating or editing a rule."""

    project_id: str
    name: str
    enabled: bool = True
    trigger_type: TriggerType
    table_name: Optional[str] = None
    threshold: Optional[Threshold] = None
    message: str


class RuleEnabledIn(CamelModel):
    enabled: bool


def _to_rule(body: RuleIn, **kwargs) -> NotificationRule:
    try:
        return NotificationRule(**body.model_dump(), **kwargs)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )


@router.get("", response_model=List[NotificationRule])
async def list_rules(
    project_id: Optional[str] = Query(None, alias="projectId"),
    repo: RuleRepository = Depends(get_rule_repository),
):
    """All rules, or only those of ``projectId``."""
    return repo.list(project_id)


@router.post("", response_model=NotificationRule, status_code=201)
async def create_rule(body: RuleIn, repo: RuleRepository = Depends(get_rule_repository)):
    rule = repo.upsert(_to_rule(body))
    logger.info(f"Created rule {rule.id} for project {rule.project_id}")
    return rule


@router.put("/{rule_id}", response_model=NotificationRule)
async def replace_rule(
    rule_id: str, body: RuleIn, repo: RuleRepository = Depends(get_rule_repository)
):
    existing = repo.get(rule_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return repo.upsert(_to_rule(body, id=rule_id, created_at=existing.created_at))


@router.patch("/{rule_id}/enabled", status_code=204)
async def set_rule_enabled(
    rule_id: str,
    body: RuleEnabledIn,
    repo: RuleRepository = Depends(get_rule_repository),
):
    """Toggle a rule. Unknown ids are accepted silently."""
    repo.set_enabled(rule_id, body.enabled)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: str, repo: RuleRepository = Depends(get_rule_repository)):
    repo.remove(rule_id)
