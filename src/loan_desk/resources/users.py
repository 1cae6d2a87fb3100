"""User Resources - Member Profiles

Resources:
- library://users/current - the member this session acts as
- library://users/{user_id} - a member's profile, loan IDs and fines owed
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..config import get_config
from ..database.repository import NotFoundError
from ..database.session import session_scope
from ..database.user_repository import UserRepository

logger = logging.getLogger(__name__)


async def current_user_handler() -> dict[str, Any]:
    """Returns the current member: the configured one, else the first registered."""
    try:
        with session_scope() as session:
            user = UserRepository(session).get_current_user(get_config().current_user_id)
            return user.model_dump(mode="json")

    except NotFoundError as e:
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in users/current resource")
        raise ResourceError(f"Failed to retrieve current user: {e!s}") from e


async def get_user_handler(user_id: str) -> dict[str, Any]:
    """Returns a member's profile."""
    try:
        logger.debug("MCP Resource Request - users/%s", user_id)

        with session_scope() as session:
            user = UserRepository(session).get_by_id(user_id)
            if user is None:
                raise ResourceError(f"User not found: {user_id}")
            return user.model_dump(mode="json")

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in users/{user_id} resource")
        raise ResourceError(f"Failed to retrieve user: {e!s}") from e


user_resources: list[dict[str, Any]] = [
    {
        "uri": "library://users/current",
        "name": "Current User",
        "description": "Profile of the member this session acts as",
        "mime_type": "application/json",
        "handler": current_user_handler,
    },
    {
        "uri_template": "library://users/{user_id}",
        "name": "User Profile",
        "description": (
            "A member's profile with current loan IDs, loan history IDs and fines owed"
        ),
        "mime_type": "application/json",
        "handler": get_user_handler,
    },
]
