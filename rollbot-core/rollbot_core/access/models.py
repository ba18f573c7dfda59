"""
Access Control Models
=====================
Immutable rule set consumed by the access policy evaluator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..errors import ConfigurationError


class AccessMode(str, Enum):
    """How whitelist and blacklist rules combine."""
    DEFAULT = "default"      # empty whitelist allows everyone
    WHITELIST = "whitelist"  # explicit whitelist match required
    BLACKLIST = "blacklist"  # only blacklist is applied


def _strings(raw: Any) -> Tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        return (raw,)
    return tuple(str(item) for item in raw)


@dataclass(frozen=True)
class WhitelistRules:
    """Explicit allow rules."""
    commands: Tuple[str, ...] = ()
    groups: Tuple[str, ...] = ()
    contacts: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.commands or self.groups or self.contacts or self.prefixes)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "WhitelistRules":
        raw = raw or {}
        return cls(
            commands=_strings(raw.get("commands")),
            groups=_strings(raw.get("groups")),
            contacts=_strings(raw.get("contacts")),
            prefixes=_strings(raw.get("prefixes")),
        )


@dataclass(frozen=True)
class BlacklistRules:
    """Explicit deny rules. ``patterns`` are case-insensitive regexes."""
    patterns: Tuple[str, ...] = ()
    commands: Tuple[str, ...] = ()
    groups: Tuple[str, ...] = ()
    contacts: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "BlacklistRules":
        raw = raw or {}
        return cls(
            patterns=_strings(raw.get("patterns")),
            commands=_strings(raw.get("commands")),
            groups=_strings(raw.get("groups")),
            contacts=_strings(raw.get("contacts")),
            prefixes=_strings(raw.get("prefixes")),
        )


@dataclass(frozen=True)
class PairingRules:
    """Static pairing passcode and trusted identities."""
    passcode: Optional[str] = None
    trusted_numbers: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "PairingRules":
        raw = raw or {}
        passcode = raw.get("passcode")
        return cls(
            passcode=str(passcode) if passcode else None,
            trusted_numbers=_strings(raw.get("trustedNumbers")),
            prefixes=_strings(raw.get("prefixes")),
        )


@dataclass(frozen=True)
class AdminRules:
    """Admin identities, admin command allow-list and nested admin whitelist."""
    admins: Tuple[str, ...] = ()
    commands: Tuple[str, ...] = ()
    whitelist: Optional[WhitelistRules] = None

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "AdminRules":
        raw = raw or {}
        whitelist = raw.get("whitelist")
        return cls(
            admins=_strings(raw.get("admins")),
            commands=_strings(raw.get("commands")),
            whitelist=WhitelistRules.from_dict(whitelist) if whitelist is not None else None,
        )


@dataclass(frozen=True)
class AccessOptions:
    """Global switches."""
    allow_partial_matches: bool = False
    disallow_individuals: bool = False
    disallow_groups: bool = False

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "AccessOptions":
        raw = raw or {}
        return cls(
            allow_partial_matches=bool(raw.get("allowPartialMatches", False)),
            disallow_individuals=bool(raw.get("disallowIndividuals", False)),
            disallow_groups=bool(raw.get("disallowGroups", False)),
        )


@dataclass(frozen=True)
class AccessConfig:
    """Complete access-control rule set, loaded once per evaluator."""
    mode: AccessMode = AccessMode.DEFAULT
    whitelist: WhitelistRules = field(default_factory=WhitelistRules)
    blacklist: BlacklistRules = field(default_factory=BlacklistRules)
    pairing: PairingRules = field(default_factory=PairingRules)
    admin: AdminRules = field(default_factory=AdminRules)
    options: AccessOptions = field(default_factory=AccessOptions)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "AccessConfig":
        """
        Build from the camelCase ``accessControl`` section of config.json.

        Raises:
            ConfigurationError: If ``mode`` is not a known access mode
        """
        raw = raw or {}
        mode_raw = raw.get("mode") or AccessMode.DEFAULT.value
        try:
            mode = AccessMode(mode_raw)
        except ValueError:
            raise ConfigurationError(f"Unknown access mode: {mode_raw!r}")

        return cls(
            mode=mode,
            whitelist=WhitelistRules.from_dict(raw.get("whitelist")),
            blacklist=BlacklistRules.from_dict(raw.get("blacklist")),
            pairing=PairingRules.from_dict(raw.get("pairing")),
            admin=AdminRules.from_dict(raw.get("admin")),
            options=AccessOptions.from_dict(raw.get("options")),
        )
