"""Base schema configuration for viscomp Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with strict validation defaults.

    Note: extra="ignore" lets saved projects from older service versions carry
    additional keys without failing validation. Required fields are still
    validated.
    """

    model_config = ConfigDict(
        extra="ignore",  # Drop extra fields instead of failing
        validate_assignment=True,
        validate_default=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        strict=True,
    )


class VerbatimSchema(BaseSchema):
    """Schema whose strings are stored exactly as given.

    Used for code, regular expressions and generated output, where leading
    and trailing whitespace is significant.
    """

    model_config = ConfigDict(str_strip_whitespace=False)
