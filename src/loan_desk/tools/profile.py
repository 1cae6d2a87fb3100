"""
Profile tool for the Loan Desk MCP Server.

update_profile edits the current member's name, email, phone or address.
Email addresses must stay unique across members.
"""

import logging
from typing import Any

from pydantic import Field

from ..database.repository import RepositoryException
from ..database.session import get_session
from ..database.user_repository import UserRepository
from ..models.user import UserProfileUpdate
from .responses import error_response, repository_error_response, resolve_user_id, success_response

logger = logging.getLogger(__name__)


class UpdateProfileInput(UserProfileUpdate):
    """Input schema for the update_profile tool."""

    user_id: str | None = Field(
        default=None,
        description="Member to update. Defaults to the current user",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
    )

    def to_update(self) -> UserProfileUpdate:
        changes = self.model_dump(exclude_unset=True, exclude_none=True, exclude={"user_id"})
        return UserProfileUpdate(**changes)


async def update_profile_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the update_profile tool. Only the fields given are changed."""
    try:
        try:
            params = UpdateProfileInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid profile parameters: %s", e)
            return error_response(f"Invalid profile parameters: {e}", "InvalidInput")

        update = params.to_update()
        if not update.model_fields_set:
            return error_response(
                "Provide at least one of name, email, phone or address", "InvalidInput"
            )

        with get_session() as session:
            try:
                user_id = resolve_user_id(session, params.user_id)
                user = UserRepository(session).update_profile(user_id, update)
            except RepositoryException as e:
                logger.info("Profile update refused: %s", e)
                return repository_error_response(e)

        changed = ", ".join(sorted(update.model_fields_set))
        return success_response(
            f"Updated {changed} for {user.name}.",
            {"user": user.model_dump(mode="json")},
        )

    except Exception as e:
        logger.exception("Unexpected error in update_profile tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


update_profile = {
    "name": "update_profile",
    "description": (
        "Update the member profile (name, email, phone, address). "
        "Fails if the new email is already registered to another member."
    ),
    "inputSchema": UpdateProfileInput.model_json_schema(),
    "handler": update_profile_handler,
}
