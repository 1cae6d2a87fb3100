"""Tests for the update_profile tool."""

from loan_desk.database.schema import User as UserDB
from loan_desk.tools import all_tools
from loan_desk.tools.profile import update_profile_handler


def text_of(result: dict) -> str:
    return result["content"][0]["text"]


class TestUpdateProfileTool:
    async def test_update_current_user(self, live_library, mock_get_session):
        result = await update_profile_handler({"phone": "555-222-3333"})

        assert "isError" not in result
        assert text_of(result) == "Updated phone for Jane Doe."
        assert result["data"]["user"]["phone"] == "5552223333"
        assert result["data"]["user"]["fines_owed"] == 1.5

        mock_get_session.expire_all()
        assert mock_get_session.get(UserDB, "user_jane_doe").phone == "5552223333"

    async def test_update_named_user(self, live_library, mock_get_session):
        result = await update_profile_handler(
            {"user_id": "user_john_smith", "name": "Johnny Smith", "address": "7 Elm Street"}
        )

        assert text_of(result) == "Updated address, name for Johnny Smith."
        assert result["data"]["user"]["address"] == "7 Elm Street"

    async def test_null_fields_are_ignored(self, live_library, mock_get_session):
        result = await update_profile_handler({"name": None, "email": "jane@example.org"})

        assert text_of(result) == "Updated email for Jane Doe."
        assert result["data"]["user"]["name"] == "Jane Doe"

    async def test_nothing_to_update(self, live_library, mock_get_session):
        result = await update_profile_handler({"user_id": "user_jane_doe"})

        assert result["isError"] is True
        assert result["errorType"] == "InvalidInput"

    async def test_duplicate_email(self, live_library, mock_get_session):
        result = await update_profile_handler({"email": "john.smith@example.com"})

        assert result["isError"] is True
        assert result["errorType"] == "Duplicate"

        mock_get_session.expire_all()
        assert mock_get_session.get(UserDB, "user_jane_doe").email == "jane.doe@example.com"

    async def test_unknown_user(self, live_library, mock_get_session):
        result = await update_profile_handler({"user_id": "user_nobody", "name": "Nobody"})

        assert result["errorType"] == "NotFound"

    async def test_invalid_email(self, live_library, mock_get_session):
        result = await update_profile_handler({"email": "not-an-email"})

        assert result["errorType"] == "InvalidInput"

    async def test_unknown_field(self, live_library, mock_get_session):
        result = await update_profile_handler({"fines_owed": 0})

        assert result["errorType"] == "InvalidInput"


def test_all_tools_registered():
    assert [tool["name"] for tool in all_tools] == [
        "search_catalog",
        "borrow_book",
        "return_book",
        "renew_loan",
        "reserve_book",
        "cancel_reservation",
        "update_profile",
    ]
    for tool in all_tools:
        assert tool["description"]
        assert tool["inputSchema"]["type"] == "object"
