from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from timecost.api.v1.deps import get_budget_engine
from timecost.core.rbac import AuthContext, require_permission
from timecost.core.security import get_auth_context
from timecost.schemas.budget_schema import Budget, BudgetComparison, BudgetIn, BudgetUpdate
from timecost.schemas.common import Permission, to_naive_utc
from timecost.services.budget_engine import BudgetEngine


router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.post("", response_model=Budget, status_code=status.HTTP_201_CREATED)
async def create_budget(
    payload: BudgetIn,
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.finance_view)
    return await engine.create(payload, auth.user_id)


@router.get("", response_model=list[Budget])
async def list_budgets(
    project: Optional[str] = Query(None),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if project is not None:
        return await engine.list_by_project(project, auth)
    return await engine.list_all(auth)


@router.get("/active", response_model=list[Budget])
async def active_budgets(
    at: Optional[datetime] = Query(None),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return await engine.list_active(auth, to_naive_utc(at))


@router.get("/comparisons", response_model=list[BudgetComparison])
async def budget_comparisons(
    at: Optional[datetime] = Query(None),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return await engine.compare_all(auth, to_naive_utc(at))


@router.get("/{budget_id}", response_model=Budget)
async def get_budget(
    budget_id: str = Path(...),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    budget = await engine.get(budget_id, auth)
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


@router.patch("/{budget_id}", response_model=Budget)
async def update_budget(
    payload: BudgetUpdate,
    budget_id: str = Path(...),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    budget = await engine.update(budget_id, payload, auth)
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


@router.delete("/{budget_id}")
async def delete_budget(
    budget_id: str = Path(...),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if not await engine.delete(budget_id, auth):
        raise HTTPException(status_code=404, detail="Budget not found")
    return {"status": "ok"}


@router.get("/{budget_id}/comparison", response_model=BudgetComparison)
async def budget_comparison(
    budget_id: str = Path(...),
    engine: BudgetEngine = Depends(get_budget_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    comparison = await engine.compare(budget_id, auth)
    if comparison is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return comparison
