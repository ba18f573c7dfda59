"""
Bot Settings
============
Loads ``config.json`` into typed settings, with environment overrides.

Environment:
    OTP_STORE_KEY: 64 hex char key for the encrypted OTP store
        (overrides ``pairing.otpStoreKey``)
    LOG_LEVEL: Log level (overrides ``logging.level``)
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import structlog

from .access.models import AccessConfig
from .errors import ConfigurationError
from .otp.models import OtpStoreConfig
from .rate_limit.models import RateLimitConfig
from .webhook.models import WebhookConfig

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_MAX_REPLY_LENGTH = 1000

DEFAULT_COMMANDS_ENABLED: Dict[str, bool] = {
    "ping": True,
    "marco": True,
    "help": True,
    "latency": True,
    "logout": True,
    "shutdown": True,
}


def read_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON config file.

    Returns an empty dict when the file is missing or unreadable.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning("config_read_failed", path=str(path), error=str(e))
        return {}
    if not isinstance(raw, dict):
        logger.warning("config_read_failed", path=str(path), error="top level is not an object")
        return {}
    return raw


def write_config(path: Union[str, Path], data: Dict[str, Any]) -> bool:
    """Write ``data`` as indented JSON atomically. Returns False on failure."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.warning("config_write_failed", path=str(path), error=str(e))
        return False


@dataclass
class BotSettings:
    """Typed view over ``config.json``."""
    access: AccessConfig = field(default_factory=AccessConfig)
    otp: OtpStoreConfig = field(default_factory=OtpStoreConfig)
    otp_store_key: Optional[str] = None
    pairing_webhook: WebhookConfig = field(default_factory=WebhookConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    data_dir: str = "data"
    admin_channel: Optional[str] = None
    enforce_admin_channel: bool = False
    silent_fail: bool = True
    commands_enabled: Dict[str, bool] = field(
        default_factory=lambda: dict(DEFAULT_COMMANDS_ENABLED)
    )
    max_reply_length: int = DEFAULT_MAX_REPLY_LENGTH
    log_level: str = "INFO"
    config_path: str = DEFAULT_CONFIG_PATH

    @classmethod
    def from_dict(
        cls,
        raw: Dict[str, Any],
        config_path: str = DEFAULT_CONFIG_PATH,
    ) -> "BotSettings":
        """
        Build settings from a parsed config document.

        Raises:
            ConfigurationError: If a section holds invalid values
        """
        pairing = raw.get("pairing") or {}
        admin = raw.get("admin") or {}
        commands = raw.get("commands") or {}
        paths = raw.get("paths") or {}
        logging_cfg = raw.get("logging") or {}

        enabled = dict(DEFAULT_COMMANDS_ENABLED)
        enabled.update({str(k): bool(v) for k, v in (commands.get("enabled") or {}).items()})

        silent_fail = commands.get("silentFail")

        return cls(
            access=AccessConfig.from_dict(raw.get("accessControl")),
            otp=OtpStoreConfig.from_dict(pairing),
            otp_store_key=pairing.get("otpStoreKey") or None,
            pairing_webhook=WebhookConfig.from_dict(pairing.get("webhook")),
            rate_limit=RateLimitConfig.from_dict(raw.get("rateLimit")),
            data_dir=str(paths.get("dataDir") or "data"),
            admin_channel=admin.get("adminChannel") or None,
            enforce_admin_channel=bool(admin.get("enforceChannel", False)),
            silent_fail=True if silent_fail is None else bool(silent_fail),
            commands_enabled=enabled,
            max_reply_length=int(commands.get("maxReplyLength") or DEFAULT_MAX_REPLY_LENGTH),
            log_level=str(logging_cfg.get("level") or "INFO").upper(),
            config_path=config_path,
        )


def load_settings(
    path: Union[str, Path] = DEFAULT_CONFIG_PATH,
    environ: Optional[Mapping[str, str]] = None,
) -> BotSettings:
    """
    Load settings from ``path`` and apply environment overrides.

    A missing or unreadable file yields defaults. A readable file with
    invalid values is rejected rather than replaced by defaults.

    Raises:
        ConfigurationError: If any section of the file holds an invalid value
    """
    environ = os.environ if environ is None else environ
    raw = read_config(path)
    try:
        settings = BotSettings.from_dict(raw, config_path=str(path))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in {path}", details=str(e)) from e

    key = environ.get("OTP_STORE_KEY")
    if key:
        settings.otp_store_key = key
    level = environ.get("LOG_LEVEL")
    if level:
        settings.log_level = level.upper()

    logger.debug(
        "settings_loaded",
        path=str(path),
        mode=settings.access.mode.value,
        persistent_otp=bool(settings.otp_store_key),
        webhook=settings.pairing_webhook.active,
    )
    return settings
