# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""CLI for the mock PLC simulator.

This module provides the command-line entry point and the interactive
console for running and inspecting the simulator.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from prompt_toolkit import print_formatted_text
from prompt_toolkit.patch_stdout import patch_stdout

from .commands import CommandHandler
from .config import ConfigStore
from .const import (
    DEFAULT_BIND_ATTEMPTS,
    DEFAULT_BIND_DELAY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_HOST,
    DEFAULT_PORTS,
    DEFAULT_TICK_INTERVAL_MS,
)
from .datastore import create_datastore
from .prompt_common import HISTORY_FILE, InteractiveSession
from .server import BindError, PLCSimulator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class _PromptLoggingHandler(logging.Handler):
    """Logging handler that writes above the interactive prompt.

    Output goes through prompt_toolkit so the prompt and any partially typed
    input are redrawn below each log line.
    """

    def emit(self, record):
        try:
            print_formatted_text(self.format(record))
        except Exception:
            self.handleError(record)


def _install_prompt_logging() -> _PromptLoggingHandler:
    """Replace the root logger's stream handlers with a _PromptLoggingHandler."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.StreamHandler):
            root_logger.removeHandler(handler)
    prompt_handler = _PromptLoggingHandler()
    prompt_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(prompt_handler)
    return prompt_handler


def _stdin_available() -> bool:
    try:
        if sys.stdin and sys.stdin.fileno() >= 0:
            os.fstat(sys.stdin.fileno())
            return True
    except (OSError, ValueError, AttributeError):
        pass
    return False


async def run_simulator(
    host: str = DEFAULT_HOST,
    ports: Sequence[int] = DEFAULT_PORTS,
    config_path: Optional[str] = DEFAULT_CONFIG_FILE,
    daemon: bool = False,
    run_for: Optional[float] = None,
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    bind_attempts: int = DEFAULT_BIND_ATTEMPTS,
    bind_delay: float = DEFAULT_BIND_DELAY,
    datastore_url: Optional[str] = None,
    datastore_key: Optional[str] = None,
    history_file: Optional[str] = None,
):
    """Run the mock PLC until shutdown, EOF, or ``run_for`` seconds elapse.

    Args:
        host: Address to bind the server
        ports: Candidate ports, tried in order
        config_path: Topology JSON file
        daemon: If True, run without the interactive console
        run_for: Maximum run time in seconds
        tick_interval_ms: Notification scheduler tick
        bind_attempts: Full passes over ``ports`` before giving up
        bind_delay: Seconds between bind passes
        datastore_url: Base URL of the REST datastore, if any
        datastore_key: API key for the datastore
        history_file: Console history file, or "none"

    Raises:
        BindError: if no port could be bound.
    """
    simulator = PLCSimulator(
        host=host,
        ports=ports,
        config=ConfigStore(config_path),
        datastore=create_datastore(datastore_url, datastore_key),
        tick_interval_ms=tick_interval_ms,
        bind_attempts=bind_attempts,
        bind_delay=bind_delay,
    )
    await simulator.start()

    stop_event = asyncio.Event()
    cmd_handler = CommandHandler(simulator=simulator, stop_callback=stop_event.set)

    interactive = not daemon
    if interactive and not _stdin_available():
        logger.warning("stdin not available, running in daemon mode")
        interactive = False

    print(f"{simulator.topology.name} started on {host}:{simulator.port}")
    if interactive:
        print("=" * 65)
        print(cmd_handler.get_help())
        print("=" * 65)
    print()

    input_task: Optional[asyncio.Task] = None
    stdout_ctx = None

    if interactive:
        session = InteractiveSession.create(
            host=host,
            port=simulator.port,
            history_file=history_file,
            is_connected=lambda: bool(simulator.protocols),
        )

        async def interactive_input_loop():
            try:
                async for line in session.input_loop(stop_check=stop_event.is_set):
                    result = await cmd_handler.execute(line)
                    if result.message:
                        print(f">>> {result.message}")
                    if stop_event.is_set():
                        break
            except asyncio.CancelledError:
                pass
            finally:
                stop_event.set()

        # Keep log output above the prompt for the rest of the run
        stdout_ctx = patch_stdout()
        stdout_ctx.__enter__()
        _install_prompt_logging()

        input_task = asyncio.create_task(interactive_input_loop())

    if run_for:

        async def timeout_shutdown():
            await asyncio.sleep(run_for)
            logger.info(f"Run time ({run_for}s) elapsed, shutting down")
            stop_event.set()

        asyncio.create_task(timeout_shutdown())

    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        if input_task:
            input_task.cancel()
            try:
                await input_task
            except asyncio.CancelledError:
                pass
        if stdout_ctx:
            stdout_ctx.__exit__(None, None, None)
        await simulator.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Mock PLC Simulator - simulated sensor modules over an ADS-like protocol"
    )
    parser.add_argument(
        "--host", "-H",
        default=DEFAULT_HOST,
        help=f"Address to bind (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        action="append",
        dest="ports",
        metavar="PORT",
        help="Candidate port, tried in the order given. Can be specified multiple "
             f"times (default: {', '.join(str(p) for p in DEFAULT_PORTS)})"
    )
    parser.add_argument(
        "--config", "-c",
        default=os.environ.get("MOCKPLC_CONFIG", DEFAULT_CONFIG_FILE),
        metavar="FILE",
        help=f"Topology JSON file (default: $MOCKPLC_CONFIG or {DEFAULT_CONFIG_FILE})"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--daemon", "-D",
        action="store_true",
        help="Run without the interactive console"
    )
    parser.add_argument(
        "--run-for", "-r",
        type=float,
        metavar="SECONDS",
        help="Maximum run time in seconds"
    )
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=DEFAULT_TICK_INTERVAL_MS,
        metavar="MS",
        help=f"Notification scheduler tick (default: {DEFAULT_TICK_INTERVAL_MS})"
    )
    parser.add_argument(
        "--bind-attempts",
        type=int,
        default=DEFAULT_BIND_ATTEMPTS,
        metavar="N",
        help=f"Passes over the candidate ports before giving up (default: {DEFAULT_BIND_ATTEMPTS})"
    )
    parser.add_argument(
        "--bind-delay",
        type=float,
        default=DEFAULT_BIND_DELAY,
        metavar="SECONDS",
        help=f"Delay between bind passes (default: {DEFAULT_BIND_DELAY})"
    )
    parser.add_argument(
        "--datastore-url",
        default=os.environ.get("MOCKPLC_DATASTORE_URL"),
        metavar="URL",
        help="REST datastore base URL (default: $MOCKPLC_DATASTORE_URL)"
    )
    parser.add_argument(
        "--datastore-key",
        default=os.environ.get("MOCKPLC_DATASTORE_KEY"),
        metavar="KEY",
        help="REST datastore API key (default: $MOCKPLC_DATASTORE_KEY)"
    )
    parser.add_argument(
        "--history",
        metavar="FILE",
        default=str(HISTORY_FILE),
        help=f"History file path, or 'none' to disable (default: {HISTORY_FILE})"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point for the simulator."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.tick_ms <= 0:
        parser.error("--tick-ms must be positive")
    if args.bind_attempts < 1:
        parser.error("--bind-attempts must be at least 1")

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        asyncio.run(run_simulator(
            host=args.host,
            ports=args.ports or DEFAULT_PORTS,
            config_path=args.config,
            daemon=args.daemon,
            run_for=args.run_for,
            tick_interval_ms=args.tick_ms,
            bind_attempts=args.bind_attempts,
            bind_delay=args.bind_delay,
            datastore_url=args.datastore_url,
            datastore_key=args.datastore_key,
            history_file=args.history,
        ))
    except BindError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nSimulator stopped.")


if __name__ == "__main__":
    main()
