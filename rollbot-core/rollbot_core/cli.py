"""
Command Line Interface
======================
Management commands for the OTP store and admin channel.

    rollbot list-jailed
    rollbot unjail <jid>
    rollbot cleanup
    rollbot set-admin <groupJid>
    rollbot unset-admin
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from typing import List, Optional

from .logging_setup import setup_logging
from .otp.store import EncryptedOtpStore
from .pairing.admin_channel import AdminChannelStore
from .settings import DEFAULT_CONFIG_PATH, BotSettings, load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollbot",
        description="Chat bot access-control and pairing management",
    )
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help="path to config.json (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list-jailed", help="show jailed identities from the OTP store")
    unjail = sub.add_parser("unjail", help="remove an identity from jail")
    unjail.add_argument("jid")
    sub.add_parser("cleanup", help="remove expired codes and jails from the OTP store")
    set_admin = sub.add_parser("set-admin", help="persist the admin channel to config")
    set_admin.add_argument("group_jid", metavar="groupJid")
    sub.add_parser("unset-admin", help="remove the admin channel from config")
    return parser


async def _open_store(settings: BotSettings) -> EncryptedOtpStore:
    store = EncryptedOtpStore(
        settings.otp,
        data_dir=settings.data_dir,
        key_hex=settings.otp_store_key,
    )
    if store.persistent:
        await store.load()
    return store


async def _list_jailed(settings: BotSettings) -> int:
    store = await _open_store(settings)
    print("Jailed entries:")
    for jid, until in sorted(store.list_jailed().items()):
        print(f"{jid} -> {datetime.fromtimestamp(until, tz=timezone.utc).isoformat()}")
    return 0


async def _unjail(settings: BotSettings, jid: str) -> int:
    store = await _open_store(settings)
    ok = await store.unjail(jid)
    print(f"Unjailed {jid}" if ok else f"No jailed entry for {jid}")
    return 0


async def _cleanup(settings: BotSettings) -> int:
    store = await _open_store(settings)
    removed = await store.cleanup()
    print("Expired codes removed" if removed else "Nothing to clean up")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``rollbot`` console script."""
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config)
    setup_logging(level=settings.log_level, json_output=False)

    if args.command == "list-jailed":
        return asyncio.run(_list_jailed(settings))
    if args.command == "unjail":
        return asyncio.run(_unjail(settings, args.jid))
    if args.command == "cleanup":
        return asyncio.run(_cleanup(settings))

    channels = AdminChannelStore(args.config)
    if args.command == "set-admin":
        ok = channels.set(args.group_jid)
    else:
        ok = channels.unset()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
