"""Base Pydantic model with strict defaults for PICTONET schemas.

All configuration schemas inherit from this base so that global config,
user config and CLI overrides validate the same way. Row payload models
relax ``extra`` where legacy documents carry unknown keys.
"""

from pydantic import BaseModel, ConfigDict


class PictonetBaseModel(BaseModel):
    """Base model for all PICTONET schemas.

    Enforces strict validation:
    - No extra fields allowed
    - Validates assignments after initialization
    - Stores enum members as their values
    - Strips surrounding whitespace from strings
    """

    model_config = ConfigDict(
        extra='forbid',           # Reject unknown fields
        validate_assignment=True, # Validate on field mutation
        use_enum_values=True,     # Convert enums to values
        str_strip_whitespace=True,# Strip whitespace from strings
    )
