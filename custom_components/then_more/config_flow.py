from typing import Any

from homeassistant.config_entries import ConfigFlow, ConfigFlowResult

from .const import DOMAIN

TITLE = "Then More"


class ThenMoreConfigFlow(ConfigFlow, domain=DOMAIN):
    """Set up Then More from the UI.

    The entry carries no options; manifest.json limits it to one instance.
    """
    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        if user_input is None:
            return self.async_show_form(step_id="user")
        return self.async_create_entry(title=TITLE, data={})
