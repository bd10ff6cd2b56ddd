"""Branch endpoints.

Listing is public so sign-up forms can offer branches. Admins create and
edit branches; branch managers get a dashboard for their own branch and
can only read the accounts and details of that branch.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, schemas, services
from ..auth import admin_only, branch_manager_only, staff_only
from ..database import get_session
from ..responses import http_error, ok
from .account import account_out, check_branch_id

router = APIRouter(prefix="/branch", tags=["Branch"])


def branch_out(branch: models.Branch) -> dict:
    return schemas.BranchRead.model_validate(branch).model_dump(mode="json")


@router.post("/create")
def create_branch(payload: schemas.CreateBranch, admin: models.User = Depends(admin_only), db: Session = Depends(get_session)):
    try:
        branch = services.BranchService(db).create(payload, created_by=admin.email)
    except ValueError as e:
        raise http_error(e)
    return ok(branch_out(branch), "Branch created successfully")


@router.get("/all")
def all_branches(db: Session = Depends(get_session)):
    """Active branches; public so sign-up forms can list them."""
    return ok([branch_out(b) for b in services.BranchService(db).list_active()], "Branches retrieved successfully")


@router.get("/type/{branch_type}")
def branches_by_type(branch_type: int, db: Session = Depends(get_session)):
    try:
        branches = services.BranchService(db).list_by_type(models.BranchType(branch_type))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid branch type")
    return ok([branch_out(b) for b in branches], "Branches retrieved successfully")


@router.get("/dashboard")
def branch_dashboard(manager: models.User = Depends(branch_manager_only), db: Session = Depends(get_session)):
    """Accounts, customers and today's traffic at the manager's branch."""
    try:
        data = services.StatsService(db).branch_dashboard(manager.branch_id)
    except ValueError as e:
        raise http_error(e)
    return ok(data, "Branch dashboard retrieved successfully")


@router.get("/{branch_id}/accounts")
def branch_accounts(branch_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    check_branch_id(user, branch_id)
    try:
        accounts = services.BranchService(db).accounts(branch_id)
    except ValueError as e:
        raise http_error(e)
    return ok([account_out(a) for a in accounts], "Branch accounts retrieved successfully")


@router.get("/{branch_id}/manager-status")
def manager_status(branch_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    try:
        status = services.BranchService(db).manager_status(branch_id)
    except ValueError as e:
        raise http_error(e)
    return ok(status, "Manager status retrieved successfully")


@router.get("/{branch_id}/details")
def branch_details(branch_id: int, user: models.User = Depends(staff_only), db: Session = Depends(get_session)):
    check_branch_id(user, branch_id)
    try:
        details = services.BranchService(db).details(branch_id)
    except ValueError as e:
        raise http_error(e)
    return ok(details, "Branch details retrieved successfully")


@router.get("/{branch_id}")
def get_branch(branch_id: int, db: Session = Depends(get_session)):
    try:
        branch = services.BranchService(db).get(branch_id)
    except ValueError as e:
        raise http_error(e)
    return ok(branch_out(branch), "Branch retrieved successfully")


@router.put("/{branch_id}")
def update_branch(
    branch_id: int,
    payload: schemas.UpdateBranch,
    admin: models.User = Depends(admin_only),
    db: Session = Depends(get_session),
):
    try:
        branch = services.BranchService(db).update(branch_id, payload, updated_by=admin.email)
    except ValueError as e:
        raise http_error(e)
    return ok(branch_out(branch), "Branch updated successfully")
