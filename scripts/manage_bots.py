#!/usr/bin/env python3
"""Manage bot integrations.

Creates, updates and deactivates bot integrations and (re)registers their
webhooks with Telegram. Configuration comes from the same environment
variables and SSM parameters the API uses.

Usage:
    python scripts/manage_bots.py list
    python scripts/manage_bots.py create --name "Premium" --token 123:ABC \\
        --channel -1001234567890 --prices price_a,price_b --offer-file offer.html
    python scripts/manage_bots.py update bot_3f9a0c1d2e4b --prices price_c
    python scripts/manage_bots.py deactivate bot_3f9a0c1d2e4b
    python scripts/manage_bots.py register bot_3f9a0c1d2e4b
    python scripts/manage_bots.py webhook-info bot_3f9a0c1d2e4b
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from paygate.models.errors import PaygateError
from paygate_api.dependencies import (
    get_admin,
    get_registration_scheduler,
    get_registry,
    get_telegram_factory,
)


def _offer_text(args: argparse.Namespace) -> str | None:
    if args.offer_file:
        return Path(args.offer_file).read_text(encoding="utf-8")
    return args.offer


def _changes(args: argparse.Namespace) -> dict[str, Any]:
    values = {
        "name": args.name,
        "bot_token": args.token,
        "channel_id": args.channel,
        "price_ids": args.prices,
        "default_locale": args.locale,
        "offer_text": _offer_text(args),
        "bot_username": args.username,
    }
    return {key: value for key, value in values.items() if value is not None}


def _add_integration_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", help="Display name")
    parser.add_argument("--token", help="Telegram bot token")
    parser.add_argument("--channel", help="Channel chat ID, e.g. -1001234567890")
    parser.add_argument("--prices", help="Comma or newline separated Stripe price IDs")
    parser.add_argument("--locale", choices=["en", "uk", "ru"], help="Default locale")
    parser.add_argument("--offer", help="Offer text (HTML)")
    parser.add_argument("--offer-file", help="Read offer text from a file")
    parser.add_argument("--username", help="Bot username; fetched from Telegram when omitted")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Paygate bot integrations")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List active integrations")

    create = commands.add_parser("create", help="Create an integration")
    _add_integration_fields(create)
    create.add_argument("--inactive", action="store_true", help="Create without activating")

    update = commands.add_parser("update", help="Update an integration")
    update.add_argument("integration_id")
    _add_integration_fields(update)
    update.add_argument("--activate", action="store_true", help="Mark the integration active")

    for name, help_text in (
        ("deactivate", "Deactivate an integration"),
        ("register", "Register commands and webhook now"),
        ("webhook-info", "Show Telegram's view of the webhook"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("integration_id")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the management command."""
    args = build_parser().parse_args(argv)

    try:
        if args.command == "list":
            for integration in get_registry().list_active():
                print(
                    f"{integration.integration_id}  {integration.name}  "
                    f"@{integration.bot_username or '?'}  channel={integration.channel_id}  "
                    f"prices={','.join(integration.price_ids)}"
                )
            return 0

        if args.command == "create":
            data = _changes(args)
            data["active"] = not args.inactive
            integration = get_admin().create(data)
            print(f"Created {integration.integration_id}")
            return 0

        if args.command == "update":
            changes = _changes(args)
            if args.activate:
                changes["active"] = True
            get_admin().update(args.integration_id, changes)
            print(f"Updated {args.integration_id}")
            return 0

        if args.command == "deactivate":
            get_admin().deactivate(args.integration_id)
            print(f"Deactivated {args.integration_id}")
            return 0

        if args.command == "register":
            ok = get_registration_scheduler().run(args.integration_id)
            print("Registered" if ok else "Registration failed, see logs")
            return 0 if ok else 1

        if args.command == "webhook-info":
            integration = get_registry().get(args.integration_id)
            if integration is None:
                print(f"Unknown integration {args.integration_id}")
                return 1
            info = get_telegram_factory().for_integration(integration).get_webhook_info()
            print(json.dumps(info, indent=2))
            return 0 if info else 1
    except PaygateError as e:
        print(f"Error: {e.message} {json.dumps(e.details or {})}")
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
