from fastapi import APIRouter, Depends

from flexform.core.deps import get_templates, require_role
from flexform.schemas.forms import FormSchema, FormSchemaCreate, FormSchemaVersion
from flexform.services.templates import TemplateRepository

router = APIRouter()


@router.get("", response_model=list[FormSchema])
def list_templates(
    include_inactive: bool = True,
    repo: TemplateRepository = Depends(get_templates),
    admin=Depends(require_role("admin")),
):
    return repo.list_schemas(include_inactive=include_inactive)


@router.post("", response_model=FormSchema, status_code=201)
def create_template(
    payload: FormSchemaCreate,
    repo: TemplateRepository = Depends(get_templates),
    admin=Depends(require_role("admin")),
):
    return repo.create(payload)


@router.get("/{template_id}", response_model=FormSchema)
def get_template(
    template_id: str,
    repo: TemplateRepository = Depends(get_templates),
    admin=Depends(require_role("admin")),
):
    return repo.get(template_id)


@router.post("/{template_id}/versions", response_model=FormSchema)
def create_template_version(
    template_id: str,
    payload: FormSchemaVersion,
    repo: TemplateRepository = Depends(get_templates),
    admin=Depends(require_role("admin")),
):
    return repo.new_version(template_id, payload.fields, description=payload.description)


@router.post("/{template_id}/deactivate", response_model=FormSchema)
def deactivate_template(
    template_id: str,
    repo: TemplateRepository = Depends(get_templates),
    admin=Depends(require_role("admin")),
):
    return repo.deactivate(template_id)
