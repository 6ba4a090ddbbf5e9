from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from flexform.api.submissions import submission_filter
from flexform.core.deps import get_current_user, get_submission_store
from flexform.services.exports import export_records
from flexform.services.store_client import StoreFilter, SubmissionStoreClient

router = APIRouter()


@router.get("/{fmt}")
def export_submissions(
    fmt: str,
    flt: StoreFilter = Depends(submission_filter),
    store: SubmissionStoreClient = Depends(get_submission_store),
    user: dict = Depends(get_current_user),
):
    records = store.select_all(flt)
    try:
        export = export_records(
            records,
            fmt,
            exported_by=str(user.get("email") or ""),
            department=flt.equals.get("department") or user.get("department"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    headers = {"Content-Disposition": f'attachment; filename="{export.filename}"'}
    return StreamingResponse(iter([export.content]), media_type=export.media_type, headers=headers)
