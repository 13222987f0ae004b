"""Error response schema."""
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Used for all error responses (4xx, 5xx) across the API. Some endpoints add
    extra keys (``invalid_event_ids``, and ``details``/``code`` for store
    errors when detail exposure is enabled).
    """

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "examples": [
                {"error": "Admin access required"},
                {"error": "Cannot demote the last admin. Promote another user to admin first."},
                {
                    "error": "Some events do not belong to your organization",
                    "invalid_event_ids": ["7d0c5a0e-4d1c-4d55-8a5e-0b6f0f7f9d11"],
                },
            ]
        },
    )

    error: str = Field(..., description="Human-readable error message")
