"""Schema-driven form rendering.

``render_form`` turns a ``FormSchema`` into an ordered list of widgets. The
widgets hold raw state (what a browser would post) and ``RenderedForm.read``
converts that state into typed ``FieldValue`` objects, validating required
presence and email shape on the way.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from flexform.core.errors import ValidationError
from flexform.schemas.forms import FieldDescriptor, FormSchema
from flexform.services.field_values import (
    BoolValue,
    DateValue,
    FieldValue,
    NumberValue,
    StringListValue,
    TextValue,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CHECKED_TOKENS = {"1", "true", "on", "yes", "y"}
SELECT_PLACEHOLDER = "Select an option..."
FILE_PROMPT = "Click to upload file or drag and drop"


def is_email_like(descriptor: FieldDescriptor) -> bool:
    name = descriptor.name.lower()
    return descriptor.type == "email" or "email" in name or "organizer" in name


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _as_checked(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in CHECKED_TOKENS


def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value]
    return [str(value)]


def _parse_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(",", ".")
    try:
        return int(text)
    except ValueError:
        return float(text)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


@dataclass
class FormInput:
    descriptor: FieldDescriptor
    index: int
    state: Any = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def html_id(self) -> str:
        return f"field_{self.index}_{self.descriptor.name}"

    @property
    def widget(self) -> str:
        kind = self.descriptor.type
        if kind in {"text", "email", "number", "date"}:
            return "input"
        if kind == "checkbox":
            return "checkbox-group" if self.descriptor.is_checkbox_group else "checkbox"
        return kind

    def set_value(self, value: Any) -> None:
        if self.widget == "checkbox-group":
            self.state = _as_list(value)
        elif self.widget == "checkbox":
            self.state = _as_checked(value)
        elif value is None:
            self.state = None
        elif self.descriptor.type in {"number", "date"} and not isinstance(value, str):
            self.state = value
        else:
            self.state = str(value)

    def clear(self) -> None:
        self.state = [] if self.widget == "checkbox-group" else (False if self.widget == "checkbox" else None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.html_id,
            "name": self.name,
            "widget": self.widget,
            "input_type": self.descriptor.type,
            "label": self.descriptor.label,
            "required": self.descriptor.required,
            "options": list(self.descriptor.options or []),
            "placeholder": self.descriptor.placeholder or "",
            "value": self.state,
        }

    def to_html(self) -> str:
        d = self.descriptor
        esc = html.escape
        required_attr = " required" if d.required else ""
        label_class = ' class="required"' if d.required else ""
        placeholder = esc(d.placeholder or "")
        value = "" if self.state is None else esc(str(self.state))
        parts = [f'<div class="form-group">', f'<label for="{self.html_id}"{label_class}>{esc(d.label)}</label>']

        widget = self.widget
        if widget == "input":
            parts.append(
                f'<input type="{d.type}" id="{self.html_id}" name="{esc(d.name)}" '
                f'placeholder="{placeholder}" value="{value}"{required_attr}>'
            )
        elif widget == "textarea":
            parts.append(
                f'<textarea id="{self.html_id}" name="{esc(d.name)}" '
                f'placeholder="{placeholder}"{required_attr}>{value}</textarea>'
            )
        elif widget == "select":
            parts.append(f'<select id="{self.html_id}" name="{esc(d.name)}"{required_attr}>')
            parts.append(f'<option value="">{SELECT_PLACEHOLDER}</option>')
            for option in d.options or []:
                selected = " selected" if self.state == option else ""
                parts.append(f'<option value="{esc(option)}"{selected}>{esc(option)}</option>')
            parts.append("</select>")
        elif widget == "radio":
            parts.append('<div class="radio-group">')
            for opt_index, option in enumerate(d.options or []):
                option_id = f"{self.html_id}_{opt_index}"
                checked = " checked" if self.state == option else ""
                parts.append(
                    f'<div class="radio-option"><input type="radio" id="{option_id}" name="{esc(d.name)}" '
                    f'value="{esc(option)}"{checked}{required_attr}><label for="{option_id}">{esc(option)}</label></div>'
                )
            parts.append("</div>")
        elif widget == "checkbox-group":
            parts.append('<div class="checkbox-group">')
            selected = set(self.state or [])
            for opt_index, option in enumerate(d.options or []):
                option_id = f"{self.html_id}_{opt_index}"
                checked = " checked" if option in selected else ""
                parts.append(
                    f'<div class="checkbox-option"><input type="checkbox" id="{option_id}" name="{esc(d.name)}[]" '
                    f'value="{esc(option)}"{checked}><label for="{option_id}">{esc(option)}</label></div>'
                )
            parts.append("</div>")
        elif widget == "checkbox":
            checked = " checked" if self.state else ""
            parts.append(
                f'<input type="checkbox" id="{self.html_id}" name="{esc(d.name)}" value="1"{checked}{required_attr}>'
            )
        elif widget == "file":
            parts.append(
                f'<div class="file-upload"><input type="file" id="{self.html_id}" name="{esc(d.name)}"{required_attr}>'
                f'<label for="{self.html_id}" class="file-upload-label"><span>{esc(value or FILE_PROMPT)}</span></label></div>'
            )
        parts.append("</div>")
        return "\n".join(parts)


@dataclass
class RenderedForm:
    schema: FormSchema
    inputs: list[FormInput] = field(default_factory=list)

    def input(self, name: str) -> FormInput | None:
        for item in self.inputs:
            if item.name == name:
                return item
        return None

    def fill(self, values: Mapping[str, Any]) -> "RenderedForm":
        for item in self.inputs:
            if item.name in values:
                item.set_value(values[item.name])
        return self

    def load_submitted(self, data: Mapping[str, Any]) -> "RenderedForm":
        """Load widget state from posted form data.

        Checkbox groups arrive as ``name[]`` (or ``name``) lists; a single
        checkbox is present with value ``"1"`` when checked and absent
        otherwise.
        """
        for item in self.inputs:
            if item.widget == "checkbox-group":
                item.set_value(data.get(f"{item.name}[]", data.get(item.name)))
            elif item.widget == "checkbox":
                item.set_value(data.get(item.name))
            else:
                item.set_value(data.get(item.name))
        return self

    def clear(self) -> "RenderedForm":
        for item in self.inputs:
            item.clear()
        return self

    def raw_state(self) -> dict[str, Any]:
        state: dict[str, Any] = {}
        for item in self.inputs:
            value = item.state
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            state[item.name] = value
        return state

    def read(self) -> dict[str, FieldValue]:
        violations: list[dict[str, str]] = []
        record: dict[str, FieldValue] = {}

        for item in self.inputs:
            d = item.descriptor
            raw = item.state
            if _is_blank(raw):
                if d.required:
                    violations.append({"field": d.name, "message": f"{d.label} is required"})
                    continue
                if item.widget == "checkbox-group":
                    record[d.name] = StringListValue(())
                elif item.widget == "checkbox":
                    record[d.name] = BoolValue(False)
                continue

            if item.widget == "checkbox-group":
                record[d.name] = StringListValue(tuple(raw))
            elif item.widget == "checkbox":
                record[d.name] = BoolValue(bool(raw))
            elif d.type == "number":
                try:
                    record[d.name] = NumberValue(_parse_number(raw))
                except ValueError:
                    violations.append({"field": d.name, "message": f"{d.label} must be a number"})
            elif d.type == "date":
                try:
                    record[d.name] = DateValue(_parse_date(raw))
                except ValueError:
                    violations.append({"field": d.name, "message": f"{d.label} must be a valid date"})
            else:
                text = str(raw)
                if is_email_like(d) and not EMAIL_RE.match(text):
                    violations.append({"field": d.name, "message": f"{d.label} must be a valid email address"})
                    continue
                record[d.name] = TextValue(text)

        if violations:
            raise ValidationError(violations)
        return record

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.schema.id,
            "name": self.schema.name,
            "description": self.schema.description,
            "version": self.schema.version,
            "inputs": [item.to_dict() for item in self.inputs],
        }

    def to_html(self) -> str:
        header = (
            '<div class="dynamic-form">\n<div class="form-header">'
            f"<h3>{html.escape(self.schema.name)}</h3><p>{html.escape(self.schema.description)}</p></div>\n"
            '<div class="form-fields">'
        )
        body = "\n".join(item.to_html() for item in self.inputs)
        return f"{header}\n{body}\n</div>\n</div>"


def render_form(schema: FormSchema, values: Mapping[str, Any] | None = None) -> RenderedForm:
    form = RenderedForm(schema=schema, inputs=[FormInput(descriptor=d, index=i) for i, d in enumerate(schema.fields)])
    form.clear()
    if values:
        form.fill(values)
    return form
