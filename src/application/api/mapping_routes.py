"""API routes for inspecting and reloading attribute-to-group mappings."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.application.di import get_container
from src.domain.models.errors import ConfigError
from src.domain.models.identity_models import IdentityAssertion, Principal
from src.domain.models.mapping_models import ConfigState
from src.domain.services.mapping_parser import split_list
from src.middleware.remote_user_auth import require_remote_user

logger = logging.getLogger(__name__)
router = APIRouter()


# Request/Response Models
class PurgeRuleResponse(BaseModel):
    """Response model for a purge rule."""
    attribute_name: str
    group_names: List[str]


class MappingRuleSetResponse(BaseModel):
    """Response model for the active mapping configuration."""
    default_roles: List[str]
    watched_attributes: List[str]
    mappings: Dict[str, List[str]]
    purge_rules: List[PurgeRuleResponse]
    source: str
    reload_enabled: bool
    reload_interval_ms: int
    loaded_at: str
    last_error: Optional[str] = None


class ResolveRequest(BaseModel):
    """Request model for previewing group resolution."""
    headers: Dict[str, str] = Field(..., description="Attribute header name -> raw header value")
    include_default_roles: bool = Field(default=True, description="Include configured default roles")


class ResolveResponse(BaseModel):
    """Response model for previewed group resolution."""
    groups: List[str]


def _to_response(state: ConfigState, source: str, last_error: Optional[ConfigError]) -> MappingRuleSetResponse:
    rules = state.rule_set
    return MappingRuleSetResponse(
        default_roles=list(rules.default_roles),
        watched_attributes=sorted(rules.watched_attributes),
        mappings={value: list(groups) for value, groups in sorted(rules.attribute_value_to_groups.items())},
        purge_rules=[
            PurgeRuleResponse(attribute_name=rule.attribute_name, group_names=list(rule.group_names))
            for rule in rules.purge_rules
        ],
        source=source,
        reload_enabled=state.settings.reload_config,
        reload_interval_ms=state.poll_interval_ms,
        loaded_at=datetime.fromtimestamp(state.loaded_at, tz=timezone.utc).isoformat(),
        last_error=str(last_error) if last_error else None,
    )


@router.get("/mappings", response_model=MappingRuleSetResponse)
async def get_mappings(principal: Principal = Depends(require_remote_user)):
    """
    Get the active attribute-to-group mapping rules.

    Returns:
        Active ruleset with its load metadata
    """
    loader = get_container().get_config_loader()
    try:
        state = loader.state()
    except ConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Configuration not loaded: {str(e)}"
        )
    return _to_response(state, loader.source.location, loader.last_error)


@router.post("/mappings/reload", response_model=MappingRuleSetResponse)
async def reload_mappings(principal: Principal = Depends(require_remote_user)):
    """
    Reload the mapping rules from the configuration source.

    On failure the previous rules stay active and 422 is returned.
    """
    loader = get_container().get_config_loader()
    try:
        state = loader.force_reload()
    except ConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Configuration reload failed, previous rules retained: {str(e)}"
        )

    logger.info(f"Mappings reloaded by {principal.username}")
    return _to_response(state, loader.source.location, None)


@router.post("/mappings/resolve", response_model=ResolveResponse)
async def resolve_groups(
    payload: ResolveRequest,
    principal: Principal = Depends(require_remote_user),
):
    """
    Preview the groups a set of attribute headers would resolve to.

    No directory calls are made.
    """
    container = get_container()
    try:
        rules = container.get_config_loader().current()
    except ConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Configuration not loaded: {str(e)}"
        )
    resolver = container.get_role_resolver()

    assertion = IdentityAssertion(
        principal_id=principal.username,
        attributes={name: tuple(split_list(value)) for name, value in payload.headers.items()},
    )
    if payload.include_default_roles:
        roles = resolver.effective_roles(assertion, rules)
    else:
        roles = resolver.resolve(assertion, rules)

    return ResolveResponse(groups=list(roles))
