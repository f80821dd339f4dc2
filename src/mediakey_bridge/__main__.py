import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from mediakey_bridge.config import BridgeConfig

ENV_FILE_PATH = Path.home() / ".config" / "mediakey-bridge" / "env"

CLIENT_COMMANDS = ("send", "open-page", "select", "status", "quit")


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool, log_file: str) -> None:
    from mediakey_bridge.log_format import ColoredFormatter

    log_level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    if sys.stderr.isatty():
        handler.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
        )
    handlers: list[logging.Handler] = [handler]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(level=log_level, handlers=handlers)

    logging.getLogger("websockets").setLevel(logging.INFO if verbose else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forward media keys to a remote WebSocket listener")
    parser.add_argument("--host", help="Remote host:port (default localhost:8000)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")

    send_parser = subparsers.add_parser("send", help="Send an action through the running bridge")
    send_parser.add_argument("action", help="mute, volume_up or volume_down")

    subparsers.add_parser("open-page", help="Open the remote page in a browser")

    select_parser = subparsers.add_parser("select", help="Select the status slot")
    select_parser.add_argument("slot", type=int, choices=[1, 2, 3])

    subparsers.add_parser("status", help="Query bridge status")
    subparsers.add_parser("quit", help="Stop the running bridge")
    return parser


def main() -> None:
    _load_env_file()
    args = build_parser().parse_args()

    config = BridgeConfig()
    if args.host:
        config.host = args.host

    _configure_logging(args.verbose, config.log_file)

    if args.command in CLIENT_COMMANDS:
        asyncio.run(_run_client_command(args, config))
    else:
        asyncio.run(_run_daemon(config))


async def _run_client_command(args: argparse.Namespace, config: BridgeConfig) -> None:
    from mediakey_bridge.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(socket_path=config.socket_path)

    try:
        if args.command == "send":
            result = await client.send_command("send", {"action": args.action})
        elif args.command == "open-page":
            result = await client.send_command("open-page")
        elif args.command == "select":
            result = await client.send_command("select", {"slot": args.slot})
        elif args.command == "status":
            result = await client.send_command("status")
        elif args.command == "quit":
            result = await client.send_command("quit")
        else:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            sys.exit(1)

        print(f"{result}")
        if result.get("status") != "ok":
            sys.exit(1)
    except ConnectionRefusedError:
        print("Media key bridge is not running", file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError:
        print("Media key bridge is not running", file=sys.stderr)
        sys.exit(1)


async def _run_daemon(config: BridgeConfig) -> None:
    from mediakey_bridge.health import run_startup_checks, has_critical_failures
    from mediakey_bridge.factory import create_bridge

    results = run_startup_checks(config)
    if has_critical_failures(results):
        logging.error("Critical health check failures, aborting startup")
        sys.exit(1)

    shutdown_event = asyncio.Event()
    channel, controller, key_source, control = create_bridge(config, on_quit=shutdown_event.set)
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await channel.start()
    await control.start()
    if key_source is not None:
        controller.attach(key_source)

    async def control_loop() -> None:
        async for request in control.requests():
            command = request.command
            response = controller.execute(command.action, command.payload)
            logging.debug("Control %s -> %s", command.action, response)
            request.respond(response)

    control_task = asyncio.create_task(control_loop())

    try:
        await shutdown_event.wait()
    finally:
        if key_source is not None:
            key_source.stop()
        control_task.cancel()
        try:
            await asyncio.wait_for(control_task, timeout=1.0)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass
        await control.stop()
        await channel.stop()


if __name__ == "__main__":
    main()
