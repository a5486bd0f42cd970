"""
Rules API Routes

Endpoints for reading, replacing and teaching the user's vendor and
category rules.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from statement_import import RuleSet
from statement_import.rule_store import RuleRepository

from ..dependencies import build_pipeline, get_rule_repository

router = APIRouter(prefix="/rules", tags=["rules"])


class RuleSetPayload(BaseModel):
    vendor_rules: list[dict[str, Any]] = Field(default_factory=list)
    category_rules: list[dict[str, Any]] = Field(default_factory=list)
    vendor_seed_state: list[dict[str, Any]] = Field(default_factory=list)
    category_seed_state: list[dict[str, Any]] = Field(default_factory=list)


class VendorCorrectionRequest(BaseModel):
    original_name: str
    corrected_name: str


class CategoryCorrectionRequest(BaseModel):
    description: str
    category: str
    rejected_category: str | None = None
    categories: list[str] = Field(default_factory=list)


@router.get("")
async def get_rules(repository: RuleRepository = Depends(get_rule_repository)) -> dict:
    """Return the saved user-defined rules."""
    return repository.load_rules().to_dict()


@router.put("")
async def replace_rules(
    payload: RuleSetPayload,
    repository: RuleRepository = Depends(get_rule_repository),
) -> dict:
    """Replace the saved user-defined rules."""
    try:
        rules = RuleSet.from_dict(payload.model_dump())
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid rule: {e}") from e

    for rule in [*rules.vendor_rules, *rules.category_rules]:
        rule.is_user_defined = True

    repository.save_rules(rules)
    return {
        "vendor_rules": len(rules.vendor_rules),
        "category_rules": len(rules.category_rules),
    }


@router.post("/vendors/learn")
async def learn_vendor(
    request: VendorCorrectionRequest,
    repository: RuleRepository = Depends(get_rule_repository),
) -> dict:
    """Teach a vendor name correction."""
    pipeline = build_pipeline(repository)
    try:
        rule = pipeline.learn_vendor(request.original_name, request.corrected_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return rule.to_dict()


@router.post("/categories/learn")
async def learn_category(
    request: CategoryCorrectionRequest,
    repository: RuleRepository = Depends(get_rule_repository),
) -> dict:
    """Teach a category correction, optionally penalizing the rejected one."""
    pipeline = build_pipeline(repository, request.categories)
    rule = pipeline.learn_category(
        request.description, request.category, request.rejected_category
    )
    if rule is None:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot learn category {request.category!r} for this description",
        )
    return rule.to_dict()
