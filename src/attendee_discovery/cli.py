"""Command-line interface for attendee-discovery"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from attendee_discovery import __version__
from attendee_discovery.log import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attendee-discovery",
        description="Discover and manage Attendee RFID attendance terminals on the local network",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        help="Path to config file (default: auto-detect)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--scan",
        action="store_true",
        help="Run one network scan, print the devices found and exit",
    )
    parser.add_argument(
        "--subnet",
        type=str,
        help="Subnet prefix to scan, e.g. 192.168.0 (default: from config)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Addresses probed concurrently per batch (default: 60)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        help="Per-address probe timeout in milliseconds (default: 400)",
    )
    parser.add_argument(
        "--web-host",
        type=str,
        help="Host for web server (default: from config)",
    )
    parser.add_argument(
        "--web-port",
        type=int,
        help="Port for web server (default: from config)",
    )
    return parser


def print_devices(devices) -> None:
    """Print a device table to stdout"""
    if not devices:
        return
    print(f"{'ADDRESS':<16} {'TYPE':<11} {'NAME':<32} FIRMWARE")
    for device in devices:
        print(
            f"{device.address:<16} {device.classification.value:<11} "
            f"{device.display_name:<32} {device.firmware_version or '-'}"
        )


async def run_scan(context, args: argparse.Namespace) -> int:
    """Run a single foreground scan and report the result"""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, cancel_event.set)

    def on_progress(progress) -> None:
        print(f"\rScanning... {progress.percent:5.1f}%", end="", file=sys.stderr, flush=True)

    def on_devices(new_devices, snapshot) -> None:
        for device in new_devices:
            print(f"\nFound {device.display_name} at {device.address}", file=sys.stderr)

    try:
        session = await context.discovery.scan(
            subnet=args.subnet,
            batch_size=args.batch_size,
            probe_timeout=args.timeout / 1000 if args.timeout else None,
            on_progress=on_progress,
            on_devices=on_devices,
            cancel_event=cancel_event,
        )
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
    print(file=sys.stderr)

    if session.error:
        print(session.error, file=sys.stderr)
        return 1

    print_devices(session.devices)
    print(session.message)
    return 0


async def run_web(context, args: argparse.Namespace, log_level: str) -> int:
    """Serve the admin API until interrupted"""
    import uvicorn

    from attendee_discovery.web.app import create_app

    host = args.web_host or context.config.web.host
    port = args.web_port or context.config.web.port
    logging.getLogger(__name__).info(f"Starting web server on {host}:{port}")

    app = create_app(context=context)
    config_uvicorn = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level.lower(),
        log_config=None,  # Prevent uvicorn from reconfiguring logging
    )
    server = uvicorn.Server(config_uvicorn)
    await server.serve()
    return 0


async def async_main(argv: Optional[list[str]] = None) -> int:
    """Async main entry point"""
    args = build_parser().parse_args(argv)

    from attendee_discovery.config import load_config
    from attendee_discovery.context import AppContext

    config = load_config(args.config)

    log_level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(log_level, config.logging.file)
    logger = logging.getLogger(__name__)

    context = AppContext.create(config)

    try:
        if args.scan:
            return await run_scan(context, args)

        await context.start()
        return await run_web(context, args, log_level)

    except asyncio.CancelledError:
        logger.info("Main task cancelled")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        await context.shutdown()
        await context.discovery.close()


def main() -> int:
    """Main entry point - wraps async_main()"""
    return asyncio.run(async_main())


if __name__ == "__main__":
    sys.exit(main())
