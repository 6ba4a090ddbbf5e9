from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, Any, List, Literal

FieldType = Literal["text", "email", "number", "date", "select", "radio", "checkbox", "textarea", "file"]

CHOICE_TYPES = {"select", "radio"}


class FieldDescriptor(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=80)
    type: FieldType = "text"
    label: str = ""
    required: bool = False
    options: Optional[List[str]] = None
    placeholder: Optional[str] = None

    @model_validator(mode="after")
    def fill_defaults(self):
        if not self.id:
            self.id = self.name
        if not self.label:
            self.label = self.name.replace("_", " ")
        return self

    @property
    def is_checkbox_group(self) -> bool:
        return self.type == "checkbox" and bool(self.options)


def _unique_names(fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
    seen: set[str] = set()
    for item in fields:
        if item.name in seen:
            raise ValueError(f'Duplicate field name "{item.name}"')
        seen.add(item.name)
    return fields


class FormSchema(BaseModel):
    id: str = Field(min_length=1, max_length=80)
    name: str
    description: str = ""
    fields: List[FieldDescriptor] = Field(default_factory=list)
    version: int = 1
    active: bool = True

    @field_validator("fields")
    @classmethod
    def check_unique_names(cls, fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
        return _unique_names(fields)

    def field(self, name: str) -> Optional[FieldDescriptor]:
        for item in self.fields:
            if item.name == name:
                return item
        return None


class FormSchemaCreate(BaseModel):
    id: str = Field(min_length=1, max_length=80)
    name: str = Field(min_length=1)
    description: str = ""
    fields: List[FieldDescriptor] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def check_unique_names(cls, fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
        return _unique_names(fields)


class FormSchemaVersion(BaseModel):
    description: Optional[str] = None
    fields: List[FieldDescriptor]

    @field_validator("fields")
    @classmethod
    def check_unique_names(cls, fields: List[FieldDescriptor]) -> List[FieldDescriptor]:
        return _unique_names(fields)


class FormSummary(BaseModel):
    id: str
    name: str
    description: str = ""
    version: int = 1
    active: bool = True


class DraftPayload(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class SubmitPayload(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class SubmitResult(BaseModel):
    id: Any
    department: str
    security_classification: str
    encrypted_fields: List[str] = Field(default_factory=list)


class SessionCreate(BaseModel):
    email: str = Field(min_length=3)
    department: str = "general"
    supabase_url: Optional[str] = None
    password: Optional[str] = None


class UnlockPayload(BaseModel):
    passphrase: str = Field(min_length=1)


class EncryptConfigPayload(BaseModel):
    service_key: str = Field(min_length=1)
    passphrase: str = Field(min_length=1)
