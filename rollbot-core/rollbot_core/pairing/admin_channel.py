"""
Admin Channel Store
===================
Persists the designated admin group (``admin.adminChannel``) in config.json.
"""

from pathlib import Path
from typing import Optional, Union

import structlog

from ..settings import DEFAULT_CONFIG_PATH, read_config, write_config

logger = structlog.get_logger(__name__)


class AdminChannelStore:
    """Read-modify-write access to ``admin.adminChannel``."""

    def __init__(
        self,
        config_path: Union[str, Path] = DEFAULT_CONFIG_PATH,
        initial: Optional[str] = None,
    ):
        self.config_path = Path(config_path)
        self._current = initial

    def get(self) -> Optional[str]:
        """Currently configured admin channel, if any."""
        return self._current

    def reload(self) -> Optional[str]:
        admin = read_config(self.config_path).get("admin") or {}
        self._current = admin.get("adminChannel") or None
        return self._current

    def set(self, group_jid: str) -> bool:
        """Persist ``group_jid`` as the admin channel. Other keys are kept."""
        config = read_config(self.config_path)
        admin = dict(config.get("admin") or {})
        admin["adminChannel"] = group_jid
        config["admin"] = admin
        if not write_config(self.config_path, config):
            return False
        self._current = group_jid
        logger.info("admin_channel_set", channel=group_jid)
        return True

    def unset(self) -> bool:
        """Remove the admin channel from config."""
        config = read_config(self.config_path)
        admin = config.get("admin")
        if isinstance(admin, dict):
            admin.pop("adminChannel", None)
        if not write_config(self.config_path, config):
            return False
        self._current = None
        logger.info("admin_channel_unset")
        return True
