"""
Error types surfaced by an autofill invocation.
"""


class AutofillError(Exception):
    """Base class for invocation-level autofill failures."""


class NoFieldsFoundError(AutofillError):
    """The page has no fillable fields."""

    def __init__(self, message: str = "No fillable form fields found"):
        super().__init__(message)


class NoMatchesFoundError(AutofillError):
    """Fields were found but none matched the profile."""

    def __init__(self, field_count: int = 0):
        self.field_count = field_count
        super().__init__(
            f"Found {field_count} fields but none matched your saved data. "
            "Try adding custom fields to your profile."
        )


class FillFailedError(AutofillError):
    """Every matched field failed to verify after its retry."""

    def __init__(self, attempted: int, outcomes=None):
        self.attempted = attempted
        self.outcomes = list(outcomes or [])
        super().__init__(f"Fill failed for all {attempted} matched fields")


class BlacklistedDomainError(AutofillError):
    """Autofill is disabled for this domain in the settings."""

    def __init__(self, hostname: str):
        self.hostname = hostname
        super().__init__(f"Autofill is disabled for {hostname}")


class ProfileValidationError(AutofillError, ValueError):
    """Profile data failed validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Validation errors: {', '.join(self.errors)}")


class SettingsValidationError(AutofillError, ValueError):
    """Settings data failed validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Settings validation errors: {', '.join(self.errors)}")
