"""
Strict Base Model for API Request/Response Validation

This module provides base classes with strict validation settings to harden
the API contract between backend and frontend.

MOTIVATION:
    Parameter mismatches between frontend and backend are a common source of bugs.
    By enforcing strict validation:
    - Unknown fields are rejected with 422 (extra="forbid")
    - Required vs optional is enforced at compile-time
    - Type mismatches fail fast with clear error messages

Usage:
    # For request bodies (strictest validation)
    class ItemCreate(StrictRequest):
        name: str
        quantity: int

    # For response bodies (allows extra fields from DB)
    class ItemResponse(StrictResponse):
        id: str
        name: str
        quantity: int

Architecture:
    API Request → StrictRequest (extra="forbid") → Route Handler
    DB Model → StrictResponse (extra="ignore") → API Response
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for API request bodies with strict validation.

    Rejects any fields not explicitly declared in the model, catching
    frontend typos and mismatches at request time rather than runtime.

    Features:
        - extra="forbid": Unknown fields raise 422 Unprocessable Entity
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
        - from_attributes=True: Allows ORM model conversion

    Example:
        >>> class ItemCreate(StrictRequest):
        ...     name: str
        ...     quantity: int
        >>>
        >>> ItemCreate(name="Widget", quantity=5)  # OK
        >>> ItemCreate(name="Widget", qty=5)  # Raises ValidationError
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
        from_attributes=True,  # Enable ORM conversion
    )


class StrictResponse(BaseModel):
    """
    Base model for API response bodies.

    More lenient than StrictRequest to allow flexibility in response data.
    Still enforces type validation but allows extra fields.

    Features:
        - extra="ignore": Silently ignores extra fields (DB may have more columns)
        - validate_default=True: Validates default values
        - from_attributes=True: Allows ORM model conversion

    Example:
        >>> class ItemResponse(StrictResponse):
        ...     id: str
        ...     name: str
        >>>
        >>> # DB model might have extra fields - they're ignored
        >>> ItemResponse.model_validate(db_item)
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields in responses
        validate_default=True,  # Validate defaults
        from_attributes=True,  # Enable ORM conversion
    )
