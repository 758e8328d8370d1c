# statuspulse_agent/main.py

import argparse
import json
import logging
import platform
import signal
import sys
import threading
import time

from statuspulse_agent.internal.agent.config import resolve_config
from statuspulse_agent.internal.agent.credentials import (
    clear_credentials,
    is_registered,
    load_credentials,
    store_credentials,
)
from statuspulse_agent.internal.agent.loop import AgentLoop
from statuspulse_agent.internal.errors import ConfigError
from statuspulse_agent.internal.forwarder.reporter import DEFAULT_SERVER_URL, Reporter
from statuspulse_agent.internal.metrics.sampler import Sampler
from statuspulse_agent.internal.metrics.sources import get_sample_source

logger = logging.getLogger("statuspulse_agent")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="StatusPulse host agent")
    subparsers = parser.add_subparsers(dest="command", required=True,
                                       help="Available commands")

    # --- 'run' command ---
    run_parser = subparsers.add_parser("run", help="Sample and report metrics until stopped")
    run_parser.add_argument("--token", help="Host token issued by the collector")
    run_parser.add_argument("--server", help=f"Collector metrics endpoint (default {DEFAULT_SERVER_URL})")
    run_parser.add_argument("--interval", type=int, help="Seconds between samples (default 60)")
    run_parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    run_parser.set_defaults(func=run_agent)

    # --- 'register' command ---
    reg_parser = subparsers.add_parser("register", help="Store the host token securely")
    reg_parser.add_argument("--token", required=True, help="Host token issued by the collector")
    reg_parser.add_argument("--server", default=DEFAULT_SERVER_URL, help="Collector metrics endpoint")
    reg_parser.set_defaults(func=register_agent)

    # --- 'unregister' command ---
    unreg_parser = subparsers.add_parser("unregister", help="Remove the stored host token")
    unreg_parser.set_defaults(func=unregister_agent)

    # --- 'status' command ---
    status_parser = subparsers.add_parser("status", help="Show whether a host token is stored")
    status_parser.set_defaults(func=show_status)

    # --- 'snapshot' command ---
    snap_parser = subparsers.add_parser("snapshot", help="Print one snapshot as JSON and exit")
    snap_parser.set_defaults(func=print_snapshot)

    return parser


def main(argv=None) -> int:
    """
    Main entrypoint for the StatusPulse agent.
    Parses command-line arguments and runs the selected command.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    return args.func(args) or 0


def run_agent(args) -> int:
    """Resolve configuration and run the sampling loop until a shutdown signal."""
    try:
        config = resolve_config(
            token=args.token,
            server=args.server,
            interval=args.interval,
            quiet=args.quiet,
        )
    except ConfigError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 1

    logging.getLogger().setLevel(config.log_level)

    print("StatusPulse Agent")
    print("--------------------")
    print(f"Host: {platform.node()}")
    print(f"Python Version: {sys.version.split()[0]}")
    print(f"Operating System: {platform.system()} ({platform.release()})")
    print(f"Collector: {config.collector_endpoint}")
    print(f"Interval: {config.sample_interval_seconds}s")
    print("--------------------")

    sampler = Sampler(get_sample_source())
    reporter = Reporter(
        endpoint=config.collector_endpoint,
        credential=config.credential,
        timeout=config.request_timeout_seconds,
    )
    stop_event = threading.Event()
    loop = AgentLoop(
        sampler,
        reporter,
        interval=config.sample_interval_seconds,
        settle_delay=config.settle_delay_seconds,
        stop_event=stop_event,
    )

    def handle_signal(signum, _frame):
        logger.info(f"Shutdown signal {signal.Signals(signum).name} received, stopping agent...")
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        loop.run()
    finally:
        reporter.close()
    print("Agent stopped.")
    return 0


def register_agent(args) -> int:
    """Store the host token and collector URL for later 'run' invocations."""
    try:
        store_credentials(args.server, args.token)
    except OSError as e:
        logger.error(f"Failed to store credentials: {e}")
        return 1
    print(f"Stored credentials for collector {args.server}.")
    return 0


def unregister_agent(args) -> int:
    if not is_registered():
        print("No stored credentials.")
        return 0
    try:
        clear_credentials()
    except OSError as e:
        logger.error(f"Failed to remove credentials: {e}")
        return 1
    print("Stored credentials removed.")
    return 0


def show_status(args) -> int:
    """Exit 0 if a host token is stored, 1 otherwise."""
    if not is_registered():
        print("Not registered. Run 'statuspulse-agent register --token <token>'.")
        return 1
    creds = load_credentials()
    print(f"Registered with collector {creds.get('server_url')}.")
    return 0


def print_snapshot(args) -> int:
    """Take a warm-up sample and one real sample, and print it. No network."""
    sampler = Sampler(get_sample_source())
    sampler.warm_up()
    # short gap so CPU and network rates have a measurement window
    time.sleep(1.0)
    print(json.dumps(sampler.sample().to_payload(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
