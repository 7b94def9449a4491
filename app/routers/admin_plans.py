from __future__ import annotations

from fastapi import APIRouter, Depends

from app.deps import get_document_store, require_admin_token
from app.schemas.requests import PlanCreateRequest, PlanUpdateRequest
from app.services.document_store import DocumentStore
from app.services.plans_admin import create_plan, list_plans, set_plan_active, update_plan

router = APIRouter(prefix="/admin/plans", tags=["admin"], dependencies=[Depends(require_admin_token)])


@router.get("")
def get_admin_plans(store: DocumentStore = Depends(get_document_store)):
    return {"success": True, "plans": list_plans(store)}


@router.post("", status_code=201)
def create_admin_plan(payload: PlanCreateRequest, store: DocumentStore = Depends(get_document_store)):
    return {"success": True, "plan": create_plan(store, payload)}


@router.put("/{plan_id}")
def update_admin_plan(plan_id: str, payload: PlanUpdateRequest, store: DocumentStore = Depends(get_document_store)):
    return {"success": True, "plan": update_plan(store, plan_id, payload)}


@router.delete("/{plan_id}")
def deactivate_admin_plan(plan_id: str, store: DocumentStore = Depends(get_document_store)):
    return {"success": True, "plan": set_plan_active(store, plan_id, False)}
