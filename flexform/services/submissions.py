from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from flexform.schemas.forms import FormSchema
from flexform.services.classifier import classify_department, classify_security, integrity_hash
from flexform.services.field_values import FieldValue, record_to_json
from flexform.services.form_renderer import render_form
from flexform.services.key_manager import KeyManager, encrypt_contact_columns
from flexform.services.store_client import StoreFilter, SubmissionStoreClient

_LOG = logging.getLogger("flexform.submissions")

HIDDEN_DETAIL_FIELDS = {"id", "created_at", "updated_at", "created_by", "department"}
LOCATION_FIELDS = ("location",)
RECENT_LIMIT = 10


def secure_contact_values(
    values: dict[str, FieldValue],
    key_manager: KeyManager,
) -> tuple[dict[str, Any], list[str]]:
    """Project typed values to JSON and encrypt every text value containing
    ``@``, whatever the field is called. Returns the record and the names of
    the encrypted fields.
    """
    record = record_to_json(values)
    encrypted = encrypt_contact_columns(record, key_manager)
    return record, encrypted


def build_submission_record(
    schema: FormSchema,
    values: dict[str, FieldValue],
    *,
    user: Mapping[str, Any],
    key_manager: KeyManager,
    now: datetime | None = None,
) -> tuple[dict[str, Any], list[str]]:
    plain = record_to_json(values)
    record, encrypted = secure_contact_values(values, key_manager)
    location = next((plain.get(name) for name in LOCATION_FIELDS if plain.get(name)), None)
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    email = str(user.get("email") or "")

    record.update(
        {
            "created_by": email,
            "created_at": stamp,
            "department": classify_department(location or user.get("department")),
            "security_classification": classify_security(plain),
            "data_hash": integrity_hash(plain),
            "source_file": f"{schema.name} - User Submission",
            "form_version": str(schema.version),
            "audit_log": [{"action": "SUBMIT", "timestamp": stamp, "user": email}],
        }
    )
    return record, encrypted


def submit_form(
    schema: FormSchema,
    data: Mapping[str, Any],
    *,
    user: Mapping[str, Any],
    store: SubmissionStoreClient,
    key_manager: KeyManager,
) -> dict[str, Any]:
    values = render_form(schema).load_submitted(data).read()
    record, encrypted = build_submission_record(schema, values, user=user, key_manager=key_manager)
    record_id = store.insert(record)
    _LOG.info(
        "submission stored template=%s id=%s department=%s encrypted=%s",
        schema.id,
        record_id,
        record["department"],
        len(encrypted),
    )
    return {
        "id": record_id,
        "department": record["department"],
        "security_classification": record["security_classification"],
        "encrypted_fields": encrypted,
    }


def visibility_for(user: Mapping[str, Any]) -> tuple[str, str] | None:
    """Rows a caller may read: admins see everything, anyone else sees their
    own department plus what they submitted themselves."""
    if user.get("role") == "admin":
        return None
    return classify_department(user.get("department")), str(user.get("email") or "")


def can_view(record: Mapping[str, Any], user: Mapping[str, Any]) -> bool:
    scope = visibility_for(user)
    if scope is None:
        return True
    department, email = scope
    return record.get("department") == department or record.get("created_by") == email


def submission_detail(record: Mapping[str, Any]) -> dict[str, Any]:
    fields = {
        key: value
        for key, value in record.items()
        if "encrypted" not in key and "hash" not in key and key != "audit_log" and key not in HIDDEN_DETAIL_FIELDS and value
    }
    return {
        "id": record.get("id"),
        "created_at": record.get("created_at"),
        "department": record.get("department"),
        "fields": fields,
    }


def dashboard_summary(
    store: SubmissionStoreClient,
    *,
    email: str,
    visible_to: tuple[str, str] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    current = now or datetime.now(timezone.utc)
    start_of_month = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    recent = store.select_all(StoreFilter(equals={"created_by": email}, limit=RECENT_LIMIT))
    return {
        "total": store.count(StoreFilter(visible_to=visible_to)),
        "mine": store.count(StoreFilter(equals={"created_by": email})),
        "this_month": store.count(StoreFilter(since=start_of_month, visible_to=visible_to)),
        "recent": [
            {
                "id": row.get("id"),
                "title": row.get("short_description") or row.get("request_title") or "Untitled Submission",
                "created_at": row.get("created_at"),
                "department": row.get("department"),
            }
            for row in recent
        ],
    }
