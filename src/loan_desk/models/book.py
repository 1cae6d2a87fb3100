"""
Book model for the Loan Desk MCP Server.

A book is a catalog entry together with its copy counts. Books are exposed as
resources (``library://books/list``, ``library://books/{book_id}``); their
``available_copies`` only ever moves by one copy at a time through borrow and
return operations.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Book(BaseModel):
    """
    Represents a book in the library catalog.

    Invariant: ``0 <= available_copies <= total_copies``.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the book",
        pattern=r"^book_[a-zA-Z0-9_]{4,}$",
        examples=["book_0001", "book_orwell_1984"],
    )

    isbn: str = Field(
        ...,
        description="International Standard Book Number (ISBN-13 format)",
        pattern=r"^\d{3}-\d{1,5}-\d{1,7}-\d{1,7}-\d{1}$|^\d+$",
        examples=["978-0-452-28423-4", "9780452284234"],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["Nineteen Eighty-Four", "Animal Farm"],
    )

    author: str = Field(
        ...,
        description="Name of the book's author",
        min_length=1,
        max_length=200,
        examples=["George Orwell", "Ursula K. Le Guin"],
    )

    genre: str = Field(
        ...,
        description="Literary genre or category of the book",
        examples=["Fiction", "Dystopian", "Science Fiction"],
    )

    publication_year: int = Field(
        ...,
        description="Year the book was published",
        ge=1450,
        le=datetime.now().year + 1,
        examples=[1949, 1945, 1969],
    )

    cover_url: str | None = Field(
        None,
        description="URL to the book's cover image",
        pattern=r"^https?://\S+$",
        examples=["https://covers.example.org/9780452284234.jpg"],
    )

    total_copies: int = Field(
        ...,
        description="Total number of copies owned by the library",
        ge=1,
        examples=[1, 3, 10],
    )

    available_copies: int = Field(
        ...,
        description="Number of copies currently on the shelf",
        ge=0,
        examples=[0, 1, 5],
    )

    description: str | None = Field(
        None,
        description="Brief description or summary of the book",
        max_length=2000,
    )

    @field_validator("isbn")
    @classmethod
    def normalize_isbn(cls, v: str) -> str:
        """Normalize ISBN by removing hyphens for consistent storage."""
        normalized = v.replace("-", "")
        if len(normalized) != 13:
            raise ValueError("ISBN must be 13 digits")
        return normalized

    @field_validator("title", "author", "genre")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value must not be blank")
        return v

    @model_validator(mode="after")
    def validate_copies(self) -> "Book":
        """Ensure available copies doesn't exceed total copies."""
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def is_available(self) -> bool:
        """Check if the book has any copy on the shelf."""
        return self.available_copies > 0

    @property
    def checked_out_copies(self) -> int:
        """Number of copies currently out on loan."""
        return self.total_copies - self.available_copies

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "book_0001",
                "isbn": "9780452284234",
                "title": "Nineteen Eighty-Four",
                "author": "George Orwell",
                "genre": "Dystopian",
                "publication_year": 1949,
                "cover_url": "https://covers.example.org/9780452284234.jpg",
                "total_copies": 3,
                "available_copies": 2,
                "description": "A totalitarian state watches everyone, always.",
            }
        },
    )
