from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from flexform.core.errors import TemplateExists, TemplateNotFound
from flexform.schemas.forms import FieldDescriptor, FormSchema, FormSchemaCreate
from flexform.services.kv_store import KeyValueStore

_LOG = logging.getLogger("flexform.templates")

TEMPLATES_INDEX_KEY = "flexform_templates"
PROFILE_KEY_PREFIX = "flexform_user_"
PROFILE_FIELDS = ("url", "email", "department")


def template_key(template_id: str) -> str:
    return f"flexform_template_{template_id}"


def template_version_key(template_id: str, version: int) -> str:
    return f"flexform_template_{template_id}_v{version}"


def draft_key(template_id: str, email: str) -> str:
    return f"flexform_draft_{template_id}_{email}"


_GEMBA_INTAKE_FIELDS = [
    {"name": "short_description", "type": "text", "label": "Short Description", "required": True},
    {"name": "contact_organizer", "type": "email", "label": "Contact / Organizer", "required": True},
    {"name": "location", "type": "text", "label": "Where (building/room #/lab)?", "required": True},
    {"name": "event_occurred", "type": "date", "label": "When did the event occur?", "required": True},
    {"name": "event_detected", "type": "date", "label": "When was the event detected?", "required": True},
    {"name": "expected_results", "type": "textarea", "label": "Expected Results", "required": True},
    {
        "name": "process_confidence",
        "type": "select",
        "label": "Based on process conf., Gemba 100% effective",
        "options": ["Yes", "No", "Partially", "Unknown"],
        "required": True,
    },
    {"name": "gemba_outcome", "type": "textarea", "label": "Outcome of Gemba", "required": True},
]

DEFAULT_TEMPLATES: list[dict[str, Any]] = [
    {
        "id": "gemba-intake",
        "name": "Gemba Intake Form",
        "description": "Standard Gemba workflow intake form",
        "fields": _GEMBA_INTAKE_FIELDS,
    },
    {
        "id": "smartsheet-gemba",
        "name": "Smartsheet Gemba Form",
        "description": "Gemba form based on Smartsheet template",
        "fields": [
            {"name": "request_title", "type": "text", "label": "Request Title", "required": True},
            {"name": "requester_email", "type": "email", "label": "Requester Email", "required": True},
            {"name": "priority", "type": "select", "label": "Priority", "options": ["High", "Medium", "Low"], "required": True},
            {"name": "description", "type": "textarea", "label": "Description", "required": True},
            {"name": "due_date", "type": "date", "label": "Due Date", "required": False},
        ],
    },
    {
        "id": "basic-contact",
        "name": "Basic Contact Form",
        "description": "Simple contact information form",
        "fields": [
            {"name": "firstName", "type": "text", "label": "First Name", "required": True, "placeholder": "Enter your first name"},
            {"name": "lastName", "type": "text", "label": "Last Name", "required": True, "placeholder": "Enter your last name"},
            {"name": "email", "type": "email", "label": "Email Address", "required": True, "placeholder": "Enter your email"},
            {"name": "phone", "type": "text", "label": "Phone Number", "placeholder": "Enter your phone number"},
            {"name": "company", "type": "text", "label": "Company", "placeholder": "Enter your company name"},
            {"name": "message", "type": "textarea", "label": "Message", "placeholder": "Enter your message"},
        ],
    },
    {
        "id": "feedback-form",
        "name": "Feedback Form",
        "description": "Customer feedback and suggestions",
        "fields": [
            {"name": "customerName", "type": "text", "label": "Customer Name", "required": True},
            {"name": "email", "type": "email", "label": "Email Address", "required": True},
            {
                "name": "rating",
                "type": "select",
                "label": "Overall Rating",
                "required": True,
                "options": ["5 - Excellent", "4 - Very Good", "3 - Good", "2 - Fair", "1 - Poor"],
            },
            {
                "name": "category",
                "type": "select",
                "label": "Feedback Category",
                "required": True,
                "options": ["Product Quality", "Customer Service", "Website Experience", "Pricing", "Other"],
            },
            {"name": "feedback", "type": "textarea", "label": "Your Feedback", "required": True},
            {"name": "recommend", "type": "radio", "label": "Would you recommend us?", "required": True, "options": ["Yes", "No", "Maybe"]},
        ],
    },
]


class TemplateRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def _index(self) -> list[str]:
        raw = self.store.get(TEMPLATES_INDEX_KEY)
        if raw is None:
            self.seed_defaults()
            raw = self.store.get(TEMPLATES_INDEX_KEY)
        return [str(item) for item in (raw or [])]

    def seed_defaults(self) -> int:
        ids: list[str] = []
        for item in DEFAULT_TEMPLATES:
            schema = FormSchema.model_validate(item)
            self.store.set(template_key(schema.id), schema.model_dump())
            ids.append(schema.id)
        self.store.set(TEMPLATES_INDEX_KEY, ids)
        _LOG.info("default templates seeded count=%s", len(ids))
        return len(ids)

    def list_schemas(self, *, include_inactive: bool = False) -> list[FormSchema]:
        out: list[FormSchema] = []
        for template_id in self._index():
            raw = self.store.get(template_key(template_id))
            if raw is None:
                continue
            schema = FormSchema.model_validate(raw)
            if schema.active or include_inactive:
                out.append(schema)
        return out

    def get(self, template_id: str) -> FormSchema:
        self._index()
        raw = self.store.get(template_key(template_id))
        if raw is None:
            raise TemplateNotFound(template_id)
        return FormSchema.model_validate(raw)

    def exists(self, template_id: str) -> bool:
        self._index()
        return self.store.get(template_key(template_id)) is not None

    def create(self, payload: FormSchemaCreate) -> FormSchema:
        if self.exists(payload.id):
            raise TemplateExists(payload.id)
        schema = FormSchema(
            id=payload.id,
            name=payload.name,
            description=payload.description,
            fields=payload.fields,
        )
        self.store.set(template_key(schema.id), schema.model_dump())
        index = self._index()
        index.append(schema.id)
        self.store.set(TEMPLATES_INDEX_KEY, index)
        _LOG.info("template created id=%s fields=%s", schema.id, len(schema.fields))
        return schema

    def new_version(
        self,
        template_id: str,
        fields: list[FieldDescriptor],
        *,
        description: str | None = None,
    ) -> FormSchema:
        current = self.get(template_id)
        self.store.set(template_version_key(current.id, current.version), current.model_dump())
        updated = FormSchema(
            id=current.id,
            name=current.name,
            description=current.description if description is None else description,
            fields=fields,
            version=current.version + 1,
            active=current.active,
        )
        self.store.set(template_key(updated.id), updated.model_dump())
        _LOG.info("template versioned id=%s version=%s", updated.id, updated.version)
        return updated

    def deactivate(self, template_id: str) -> FormSchema:
        schema = self.get(template_id)
        schema.active = False
        self.store.set(template_key(schema.id), schema.model_dump())
        _LOG.info("template deactivated id=%s", schema.id)
        return schema


class DraftRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, template_id: str, email: str, data: dict[str, Any]) -> dict[str, Any]:
        draft = {
            "template": template_id,
            "data": dict(data),
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        self.store.set(draft_key(template_id, email), draft)
        return draft

    def load(self, template_id: str, email: str) -> dict[str, Any] | None:
        return self.store.get(draft_key(template_id, email))

    def remove(self, template_id: str, email: str) -> None:
        self.store.delete(draft_key(template_id, email))


class ProfileCache:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, *, url: str | None, email: str, department: str) -> None:
        values = {"url": url or "", "email": email, "department": department}
        for name in PROFILE_FIELDS:
            self.store.set(f"{PROFILE_KEY_PREFIX}{name}", values[name])

    def load(self) -> dict[str, str] | None:
        values = {name: self.store.get(f"{PROFILE_KEY_PREFIX}{name}") for name in PROFILE_FIELDS}
        if not values["email"]:
            return None
        return {k: str(v or "") for k, v in values.items()}
