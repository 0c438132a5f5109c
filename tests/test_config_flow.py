from unittest.mock import MagicMock, patch

from custom_components.then_more.config_flow import ThenMoreConfigFlow


async def test_user_step_shows_form_first() -> None:
    flow = ThenMoreConfigFlow()

    with patch.object(flow, "async_show_form", MagicMock(return_value="form")) as show_form:
        assert await flow.async_step_user() == "form"

    show_form.assert_called_once_with(step_id="user")


async def test_user_step_creates_entry_without_checking_existing_entries() -> None:
    """A single instance is enforced by the manifest, not by the flow."""
    flow = ThenMoreConfigFlow()

    with (
        patch.object(flow, "async_create_entry", MagicMock(return_value="entry")) as create_entry,
        patch.object(flow, "_async_current_entries") as current_entries,
    ):
        assert await flow.async_step_user({}) == "entry"

    create_entry.assert_called_once_with(title="Then More", data={})
    current_entries.assert_not_called()
