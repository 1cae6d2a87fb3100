"""
User model for the Loan Desk MCP Server.

Users are library members. Their loan lists and fines are derived from the
loan records rather than stored on the user, so the profile itself only
changes through ``update_profile``.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _normalize_phone(v: str | None) -> str | None:
    if v is None:
        return v
    return v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")


class User(BaseModel):
    """
    Represents a library member and their borrowing record.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the user",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
        examples=["user_0001", "user_jane_doe"],
    )

    name: str = Field(
        ...,
        description="Full name of the user",
        min_length=2,
        max_length=200,
        examples=["Jane Doe"],
    )

    email: EmailStr = Field(
        ...,
        description="Email address for notifications",
        examples=["jane.doe@example.com"],
    )

    phone: str | None = Field(
        None,
        description="Phone number",
        pattern=r"^\+?[\d\s\-\(\)]+$",
        examples=["555-123-4567"],
    )

    address: str | None = Field(
        None,
        description="Mailing address",
        max_length=500,
    )

    member_since: date = Field(
        ...,
        description="Date the user joined the library",
    )

    current_loans: list[str] = Field(
        default_factory=list,
        description="IDs of the user's active loans",
    )

    loan_history: list[str] = Field(
        default_factory=list,
        description="IDs of all the user's loans, most recent first",
    )

    fines_owed: float = Field(
        default=0.0,
        description="Sum of late fees assessed on returned loans",
        ge=0.0,
    )

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str | None:
        """Normalize phone number by removing common formatting."""
        return _normalize_phone(v)

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "id": "user_0001",
                "name": "Jane Doe",
                "email": "jane.doe@example.com",
                "phone": "5551234567",
                "address": "12 Library Lane, Springfield",
                "member_since": "2023-01-15",
                "current_loans": ["loan_202401150001"],
                "loan_history": ["loan_202401150001"],
                "fines_owed": 1.5,
            }
        },
    )


class UserProfileUpdate(BaseModel):
    """Editable profile fields - all optional, unset fields are left alone."""

    name: str | None = Field(default=None, min_length=2, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, pattern=r"^\+?[\d\s\-\(\)]+$")
    address: str | None = Field(default=None, max_length=500)

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str | None:
        return _normalize_phone(v)

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")
