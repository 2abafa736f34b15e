# Task Relay: Command-line Entry Point
#
#   task-relay sign TYPE USERNAME [--timestamp T]
#   task-relay check-url URL
#   task-relay dispatch {URL_CHECK,REQUEST_TASK} [--data JSON]
#   task-relay config {get KEY | set KEY VALUE | list}
#   task-relay serve [--host H] [--port P]
#
# Settings come from TASK_RELAY_* variables (and .env); identity and task
# values live in the SQLite config store at settings.store_path.

import argparse
import asyncio
import json
import logging
import sys

from . import __version__
from .api.signature import current_timestamp, sign
from .core import EventSeverity, EventType, RelaySettings, SqliteConfigStore, get_audit_logger
from .core.settings import ENABLED_KEY
from .guardian.risk_monitor import RiskMonitor, is_risk_url
from .relay.dispatcher import MessageDispatcher
from .relay.protocol import Message, MessageType

logger = logging.getLogger("task_relay")


def _parse_config_value(key: str, raw: str):
    """``enabled`` is stored as a boolean, everything else as text."""
    if key == ENABLED_KEY:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return raw


def cmd_sign(args, settings: RelaySettings) -> int:
    timestamp = args.timestamp or current_timestamp()
    signature = sign(args.type, args.username, timestamp, settings.signing_secret)
    print(json.dumps({"t": timestamp, "ras": signature}))
    return 0


def cmd_check_url(args, settings: RelaySettings) -> int:
    risky = is_risk_url(args.url, settings)
    print(json.dumps({"url": args.url, "risk": risky}))
    return 1 if risky else 0


async def _dispatch(settings: RelaySettings, message: Message):
    store = SqliteConfigStore(settings.store_path)
    dispatcher = MessageDispatcher(settings, store)
    try:
        return await dispatcher.dispatch(message)
    finally:
        await dispatcher.aclose()


def cmd_dispatch(args, settings: RelaySettings) -> int:
    message = Message(type=MessageType(args.type), data=args.data)
    response = asyncio.run(_dispatch(settings, message))
    print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
    return 0 if response.success else 1


def cmd_config(args, settings: RelaySettings) -> int:
    store = SqliteConfigStore(settings.store_path)
    if args.action == "list":
        print(json.dumps(store.get_all(), ensure_ascii=False, indent=2))
        return 0
    if args.action == "get":
        value = store.get_many([args.key])[args.key]
        if not value and value is not False:
            print(f"{args.key}: (not set)", file=sys.stderr)
            return 1
        print(json.dumps(value, ensure_ascii=False))
        return 0
    if args.value is None:
        print("config set requires KEY and VALUE", file=sys.stderr)
        return 2
    store.set_many({args.key: _parse_config_value(args.key, args.value)})
    return 0


def cmd_serve(args, settings: RelaySettings) -> int:
    import uvicorn

    from .relay.server import create_app

    store = SqliteConfigStore(settings.store_path)
    app = create_app(
        MessageDispatcher(settings, store),
        RiskMonitor(settings, store),
    )
    print(f"Task relay listening on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-relay",
        description="Signed-request relay for the JD task API",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Task Relay v{__version__}",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")

    sub = parser.add_subparsers(dest="command", required=True)

    p_sign = sub.add_parser("sign", help="Compute the ras signature")
    p_sign.add_argument("type")
    p_sign.add_argument("username", nargs="?", default="")
    p_sign.add_argument("--timestamp", default=None, help="Fixed t value")
    p_sign.set_defaults(func=cmd_sign)

    p_check = sub.add_parser("check-url", help="Evaluate a URL against the risk rules")
    p_check.add_argument("url")
    p_check.set_defaults(func=cmd_check_url)

    p_dispatch = sub.add_parser("dispatch", help="Send one protocol message")
    p_dispatch.add_argument("type", choices=[t.value for t in MessageType])
    p_dispatch.add_argument("--data", default=None, help="JSON payload for REQUEST_TASK")
    p_dispatch.set_defaults(func=cmd_dispatch)

    p_config = sub.add_parser("config", help="Read or write the config store")
    p_config.add_argument("action", choices=["get", "set", "list"])
    p_config.add_argument("key", nargs="?")
    p_config.add_argument("value", nargs="?")
    p_config.set_defaults(func=cmd_config)

    p_serve = sub.add_parser("serve", help="Run the local HTTP relay")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8765)
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "config" and args.action in ("get", "set") and not args.key:
        parser.error(f"config {args.action} requires KEY")

    settings = RelaySettings.from_env(dotenv_path=args.env_file)

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Task relay command started",
        details={"version": __version__, "command": args.command},
    )
    try:
        return args.func(args, settings)
    finally:
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Task relay command finished",
            details={"command": args.command},
        )


if __name__ == "__main__":
    sys.exit(main())
