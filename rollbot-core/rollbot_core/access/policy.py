"""
Access Policy
=============
Synchronous allow/deny decisions for inbound messages and admin commands.

All checks are pure functions of the configured rule set and the inputs,
so they can run inline in the message path.
"""

import hmac
import re
from typing import Iterable, List, Optional, Pattern

import structlog

from ..errors import ConfigurationError
from ..logging_setup import mask_jid
from .models import AccessConfig, AccessMode

logger = structlog.get_logger(__name__)


class AccessPolicy:
    """
    Access policy evaluator bound to one ``AccessConfig``.

    Example:
        policy = AccessPolicy(AccessConfig.from_dict(cfg["accessControl"]))
        if not policy.is_message_allowed(text, sender, is_group, group_jid):
            return
    """

    def __init__(self, config: Optional[AccessConfig] = None):
        self.config = config or AccessConfig()
        self._blacklist_regexes: List[Pattern[str]] = self._compile_patterns(
            self.config.blacklist.patterns
        )

    @staticmethod
    def _compile_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid blacklist pattern {pattern!r}: {e}"
                )
        return compiled

    # -------------------------------------------------------------------------
    # Matching primitives
    # -------------------------------------------------------------------------

    def _match(self, entries: Iterable[str], value: Optional[str]) -> bool:
        """Exact match, or substring containment when partial matching is on."""
        if not value:
            return False
        entries = tuple(entries)
        if not entries:
            return False
        if self.config.options.allow_partial_matches:
            return any(entry in value for entry in entries)
        return value in entries

    @staticmethod
    def _match_prefix(prefixes: Iterable[str], value: Optional[str]) -> bool:
        if not value:
            return False
        return any(value.startswith(prefix) for prefix in prefixes)

    # -------------------------------------------------------------------------
    # Individual predicates
    # -------------------------------------------------------------------------

    def is_contact_whitelisted(self, jid: Optional[str]) -> bool:
        return self._match(self.config.whitelist.contacts, jid)

    def is_group_whitelisted(self, group_jid: Optional[str]) -> bool:
        return self._match(self.config.whitelist.groups, group_jid)

    def is_contact_blacklisted(self, jid: Optional[str]) -> bool:
        return self._match(self.config.blacklist.contacts, jid)

    def is_group_blacklisted(self, group_jid: Optional[str]) -> bool:
        return self._match(self.config.blacklist.groups, group_jid)

    def is_prefix_blacklisted(self, jid: Optional[str]) -> bool:
        return self._match_prefix(self.config.blacklist.prefixes, jid)

    def is_text_blacklisted(self, text: Optional[str]) -> bool:
        if not text:
            return False
        return any(regex.search(text) for regex in self._blacklist_regexes)

    def is_command_whitelisted(self, command: Optional[str]) -> bool:
        if not command:
            return False
        return command in self.config.whitelist.commands

    def is_command_blacklisted(self, command: Optional[str]) -> bool:
        if not command:
            return False
        return command in self.config.blacklist.commands

    def is_admin(self, jid: Optional[str]) -> bool:
        return self._match(self.config.admin.admins, jid)

    def is_admin_command_allowed(self, command: Optional[str], jid: Optional[str]) -> bool:
        """
        Check whether ``jid`` may run the admin ``command``.

        ``admin.commands`` (when non-empty) restricts which commands count as
        admin commands at all. A nested ``admin.whitelist`` then requires the
        command to be listed there or the jid to match its contacts/prefixes.
        """
        if not command:
            return False
        admin = self.config.admin
        if admin.commands and command not in admin.commands:
            return False
        whitelist = admin.whitelist
        if whitelist is None:
            return True
        if command in whitelist.commands:
            return True
        if jid and (
            self._match(whitelist.contacts, jid)
            or self._match_prefix(whitelist.prefixes, jid)
        ):
            return True
        return False

    def check_pairing_passcode(self, entered: Optional[str]) -> bool:
        """Open when no passcode is configured, otherwise exact equality."""
        passcode = self.config.pairing.passcode
        if not passcode:
            return True
        if not entered:
            return False
        return hmac.compare_digest(entered.encode(), passcode.encode())

    def is_trusted_number(self, jid: Optional[str]) -> bool:
        if not jid:
            return False
        pairing = self.config.pairing
        return self._match(pairing.trusted_numbers, jid) or self._match_prefix(
            pairing.prefixes, jid
        )

    # -------------------------------------------------------------------------
    # Message admission
    # -------------------------------------------------------------------------

    def _matches_whitelist(
        self,
        text: Optional[str],
        from_jid: Optional[str],
        is_group: bool,
        group_jid: Optional[str],
    ) -> bool:
        if self.is_contact_whitelisted(from_jid):
            return True
        if self._match_prefix(self.config.whitelist.prefixes, from_jid):
            return True
        if is_group and self.is_group_whitelisted(group_jid):
            return True
        tokens = (text or "").split()
        command = tokens[0] if tokens else ""
        return self.is_command_whitelisted(command)

    def is_message_allowed(
        self,
        text: Optional[str],
        from_jid: Optional[str],
        is_group: bool = False,
        group_jid: Optional[str] = None,
    ) -> bool:
        """
        Decide whether an inbound message may be processed.

        Deny rules are applied first; the configured mode then decides how
        whitelist rules are used.
        """
        options = self.config.options
        if options.disallow_individuals and not is_group:
            return False
        if options.disallow_groups and is_group:
            return False

        if self.is_contact_blacklisted(from_jid) or self.is_prefix_blacklisted(from_jid):
            logger.debug("message_denied_blacklisted_sender", sender=mask_jid(from_jid))
            return False
        if is_group and self.is_group_blacklisted(group_jid):
            return False
        if self.is_text_blacklisted(text):
            logger.debug("message_denied_blacklisted_text", sender=mask_jid(from_jid))
            return False

        mode = self.config.mode
        if mode == AccessMode.BLACKLIST:
            return True

        if self.config.whitelist.is_empty:
            # whitelist mode with nothing configured denies everything
            return mode != AccessMode.WHITELIST

        return self._matches_whitelist(text, from_jid, is_group, group_jid)
