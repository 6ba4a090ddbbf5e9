from __future__ import annotations


class FlexFormError(Exception):
    pass


class ValidationError(FlexFormError):
    """Form input failed validation.

    Carries every violation found, not just the first one, so the portal can
    show them inline in a single pass.
    """

    def __init__(self, violations: list[dict[str, str]]):
        self.violations = list(violations)
        fields = ", ".join(v["field"] for v in self.violations) or "-"
        super().__init__(f"Validation failed for: {fields}")

    @property
    def messages(self) -> list[str]:
        return [v["message"] for v in self.violations]


class DecryptionError(FlexFormError):
    pass


class KeyManagerNotInitialized(FlexFormError):
    pass


class StoreError(FlexFormError):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RecordNotFound(StoreError):
    pass


class StoreConnectionError(StoreError):
    pass


class ImportRowError(FlexFormError):
    def __init__(self, row_number: int, message: str):
        self.row_number = row_number
        self.message = message
        super().__init__(f"row {row_number}: {message}")


class TemplateNotFound(FlexFormError):
    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")


class TemplateExists(FlexFormError):
    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template already exists: {template_id}")
