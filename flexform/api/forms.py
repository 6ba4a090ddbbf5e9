from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from flexform.core.deps import (
    get_current_user,
    get_drafts,
    get_field_key_manager,
    get_submission_store,
    get_templates,
)
from flexform.schemas.forms import DraftPayload, FormSchema, FormSummary, SubmitPayload, SubmitResult
from flexform.services.form_renderer import render_form
from flexform.services.key_manager import KeyManager
from flexform.services.store_client import SubmissionStoreClient
from flexform.services.submissions import submit_form
from flexform.services.templates import DraftRepository, TemplateRepository

router = APIRouter()


def _active_template_or_404(repo: TemplateRepository, template_id: str) -> FormSchema:
    schema = repo.get(template_id)
    if not schema.active:
        raise HTTPException(status_code=404, detail="Template not found")
    return schema


@router.get("", response_model=list[FormSummary])
def list_forms(repo: TemplateRepository = Depends(get_templates), user: dict = Depends(get_current_user)):
    return [FormSummary(**schema.model_dump(exclude={"fields"})) for schema in repo.list_schemas()]


@router.get("/{template_id}")
def get_form(
    template_id: str,
    repo: TemplateRepository = Depends(get_templates),
    drafts: DraftRepository = Depends(get_drafts),
    user: dict = Depends(get_current_user),
):
    schema = _active_template_or_404(repo, template_id)
    draft = drafts.load(template_id, user["email"])
    form = render_form(schema, (draft or {}).get("data"))
    return {"schema": schema.model_dump(), "form": form.to_dict(), "draft_saved_at": (draft or {}).get("saved_at")}


@router.get("/{template_id}/html", response_class=HTMLResponse)
def get_form_html(
    template_id: str,
    repo: TemplateRepository = Depends(get_templates),
    drafts: DraftRepository = Depends(get_drafts),
    user: dict = Depends(get_current_user),
):
    schema = _active_template_or_404(repo, template_id)
    draft = drafts.load(template_id, user["email"])
    return HTMLResponse(render_form(schema, (draft or {}).get("data")).to_html())


@router.get("/{template_id}/draft")
def load_draft(
    template_id: str,
    drafts: DraftRepository = Depends(get_drafts),
    user: dict = Depends(get_current_user),
):
    draft = drafts.load(template_id, user["email"])
    if draft is None:
        raise HTTPException(status_code=404, detail="No saved draft")
    return draft


@router.put("/{template_id}/draft")
def save_draft(
    template_id: str,
    payload: DraftPayload,
    repo: TemplateRepository = Depends(get_templates),
    drafts: DraftRepository = Depends(get_drafts),
    user: dict = Depends(get_current_user),
):
    schema = _active_template_or_404(repo, template_id)
    # Drafts keep only known fields, in whatever partial state they are in.
    state = render_form(schema).load_submitted(payload.data).raw_state()
    return drafts.save(template_id, user["email"], state)


@router.delete("/{template_id}/draft", status_code=204)
def delete_draft(
    template_id: str,
    drafts: DraftRepository = Depends(get_drafts),
    user: dict = Depends(get_current_user),
):
    drafts.remove(template_id, user["email"])


@router.post("/{template_id}/submit", response_model=SubmitResult, status_code=201)
def submit(
    template_id: str,
    payload: SubmitPayload,
    repo: TemplateRepository = Depends(get_templates),
    drafts: DraftRepository = Depends(get_drafts),
    store: SubmissionStoreClient = Depends(get_submission_store),
    key_manager: KeyManager = Depends(get_field_key_manager),
    user: dict = Depends(get_current_user),
):
    schema = _active_template_or_404(repo, template_id)
    result = submit_form(schema, payload.data, user=user, store=store, key_manager=key_manager)
    drafts.remove(template_id, user["email"])
    return result
