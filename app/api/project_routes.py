"""SUPAWATCH — Project Routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from app.analyzer.aggregator import MetricsAggregator
from app.connectors.supabase.validator import CredentialValidator
from app.database import get_project_repository, get_rule_repository
from app.models.base import CamelModel
from app.models.dashboard_models import DashboardSnapshot
from app.models.project_models import Project, ProjectStatus, ValidationResult
from app.storage.repositories import ProjectRepository, RuleRepository
from app.core.logging import get_logger

logger = get_logger("api.projects")

router = APIRouter(prefix="/projects", tags=["Projects"])

DEFAULT_PROJECT_NAME = "My Project"


# ── Request / Response Models ──


class ProjectIn(CamelModel):
    """Body for registering or replacing a project."""

    name: Optional[str] = None
    url: str
    credential: str = Field(alias="serviceRoleKey")
    secondary_token: Optional[str] = Field(default=None, alias="personalAccessToken")


class ProjectOut(CamelModel):
    """Project as shown to the operator. Secrets are never echoed back."""

    id: str
    name: str
    project_ref: str
    url: str
    status: ProjectStatus
    created_at: datetime
    has_secondary_token: bool

    @classmethod
    def from_project(cls, project: Project) -> "ProjectOut":
        return cls(
            id=project.id,
            name=project.name,
            project_ref=project.project_ref,
            url=project.url,
            status=project.status,
            created_at=project.created_at,
            has_secondary_token=project.secondary_token is not None,
        )


# ── Dependencies ──


def get_credential_validator() -> CredentialValidator:
    return CredentialValidator()


def get_metrics_aggregator() -> MetricsAggregator:
    return MetricsAggregator()


async def _validated(body: ProjectIn, validator: CredentialValidator) -> ValidationResult:
    url, credential = body.url.strip(), body.credential.strip()
    if not url or not credential:
        raise HTTPException(
            status_code=422, detail="Both project URL and API key are required"
        )
    result = await validator.validate(url, credential)
    if not result.valid:
        raise HTTPException(
            status_code=400,
            detail={"error": result.error.value, "message": result.detail},
        )
    return result


def _build_project(body: ProjectIn, project_ref: str, **kwargs) -> Project:
    token = (body.secondary_token or "").strip() or None
    return Project(
        name=(body.name or "").strip() or DEFAULT_PROJECT_NAME,
        project_ref=project_ref,
        url=body.url.strip(),
        credential=body.credential.strip(),
        secondary_token=token,
        **kwargs,
    )


def _require(repo: ProjectRepository, project_id: str) -> Project:
    project = repo.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# ── Endpoints ──


@router.post("", response_model=ProjectOut, status_code=201)
async def register_project(
    body: ProjectIn,
    validator: CredentialValidator = Depends(get_credential_validator),
    repo: ProjectRepository = Depends(get_project_repository),
):
    """Validate the credentials, then persist a new healthy project."""
    result = await _validated(body, validator)
    project = repo.upsert(_build_project(body, result.project_ref))
    logger.info(
        f"Registered project {project.id} ({project.project_ref})",
        extra={"project_ref": project.project_ref},
    )
    return ProjectOut.from_project(project)


@router.get("", response_model=List[ProjectOut])
async def list_projects(repo: ProjectRepository = Depends(get_project_repository)):
    return [ProjectOut.from_project(p) for p in repo.list()]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str, repo: ProjectRepository = Depends(get_project_repository)
):
    return ProjectOut.from_project(_require(repo, project_id))


@router.put("/{project_id}", response_model=ProjectOut)
async def replace_project(
    project_id: str,
    body: ProjectIn,
    validator: CredentialValidator = Depends(get_credential_validator),
    repo: ProjectRepository = Depends(get_project_repository),
):
    """Full replace. New credentials are re-validated before being stored."""
    existing = _require(repo, project_id)
    result = await _validated(body, validator)
    project = repo.upsert(
        _build_project(
            body,
            result.project_ref,
            id=existing.id,
            status=existing.status,
            created_at=existing.created_at,
        )
    )
    return ProjectOut.from_project(project)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    cascade: bool = Query(False, description="Also delete this project's rules"),
    repo: ProjectRepository = Depends(get_project_repository),
    rules: RuleRepository = Depends(get_rule_repository),
):
    """Delete a project. Rules are kept unless ``cascade`` is set."""
    repo.remove(project_id)
    if cascade:
        removed = rules.remove_for_project(project_id)
        logger.info(f"Removed {removed} rules with project {project_id}")


@router.get("/{project_id}/dashboard", response_model=DashboardSnapshot)
async def project_dashboard(
    project_id: str,
    repo: ProjectRepository = Depends(get_project_repository),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator),
):
    """Stats, resource usage and recent activity, recomputed on every call."""
    project = _require(repo, project_id)
    return await aggregator.snapshot(project)
