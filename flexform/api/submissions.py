from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from flexform.core.deps import get_current_user, get_submission_store
from flexform.core.errors import RecordNotFound
from flexform.services.exports import strip_sensitive
from flexform.services.store_client import StoreFilter, SubmissionStoreClient
from flexform.services.submissions import can_view, dashboard_summary, submission_detail, visibility_for

router = APIRouter()


def submission_filter(
    department: Optional[str] = None,
    created_by: Optional[str] = None,
    mine: bool = False,
    since: Optional[date] = None,
    until: Optional[date] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=5000),
    user: dict = Depends(get_current_user),
) -> StoreFilter:
    equals = {"department": department, "created_by": user.get("email") if mine else created_by}
    return StoreFilter(equals=equals, since=since, until=until, limit=limit, visible_to=visibility_for(user))


@router.get("")
def list_submissions(
    flt: StoreFilter = Depends(submission_filter),
    store: SubmissionStoreClient = Depends(get_submission_store),
):
    rows = store.select_all(flt)
    return {"rows": [strip_sensitive(row) for row in rows], "total": len(rows)}


@router.get("/dashboard")
def dashboard(
    store: SubmissionStoreClient = Depends(get_submission_store),
    user: dict = Depends(get_current_user),
):
    return dashboard_summary(store, email=str(user.get("email") or ""), visible_to=visibility_for(user))


@router.get("/{submission_id}")
def get_submission(
    submission_id: str,
    store: SubmissionStoreClient = Depends(get_submission_store),
    user: dict = Depends(get_current_user),
):
    record = store.select_one(submission_id)
    if not can_view(record, user):
        raise RecordNotFound(f"Record {submission_id} not found", status_code=404)
    return submission_detail(record)
