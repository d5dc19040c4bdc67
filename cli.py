#!/usr/bin/env python3
"""
Command-line interface for the CRM event services.

Usage:
    crm-events <command> [options]

Commands:
    demo        Run an in-process scenario (memory bus, mock email)
    consume     Run the notification worker against the configured bus
    publish     Publish one event JSON document on a domain
    topology    Print the exchange, queues and binding patterns
    serve       Start the notification API server
    test        Run the test suite

Examples:
    crm-events demo user-registered
    BUS_BACKEND=rabbitmq crm-events consume
    crm-events publish customer '{"event_type": "customer.created", "customer_id": 1, "email": "a@x.com"}'
"""

import argparse
import subprocess
import sys

from messaging.topology import BINDINGS, Domain
from shared.config import get_settings
from shared.logging_setup import configure_logging


# =============================================================================
# Commands
# =============================================================================

def cmd_demo(args: argparse.Namespace) -> int:
    from notification_service.demo import run_demo

    run_demo(args.scenario, log_level=args.log_level)
    return 0


def cmd_consume(args: argparse.Namespace) -> int:
    """Block on the worker until SIGINT/SIGTERM."""
    from notification_service.worker import NotificationWorker

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    NotificationWorker(settings=settings).run_forever()
    return 0


def cmd_publish(args: argparse.Namespace) -> int:
    """
    Publish a single event read from the command line or a file.

    Exits non-zero when the body is not a valid event or the bus refused it.
    """
    from pydantic import ValidationError

    from messaging.bus import create_bus
    from messaging.envelope import parse_event
    from messaging.publisher import EventPublisher
    from messaging.topology import declare_topology

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    raw = args.event
    if raw.startswith("@"):
        with open(raw[1:], "r") as f:
            raw = f.read()
    try:
        event = parse_event(raw)
    except ValidationError as e:
        print(f"Invalid event: {e}", file=sys.stderr)
        return 2

    with create_bus(settings) as bus:
        declare_topology(bus, settings.exchange_name)
        published = EventPublisher(bus, settings.exchange_name).publish(Domain(args.domain), event)
    print(f"{'Published' if published else 'Failed to publish'} {event}")
    return 0 if published else 1


def cmd_topology(args: argparse.Namespace) -> int:
    settings = get_settings()
    print(f"exchange: {settings.exchange_name} (topic)")
    for binding in BINDINGS:
        print(f"  {binding.queue:<32} <- {binding.pattern:<20} (broker: {binding.broker_pattern})")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    print(f"Starting server at http://{args.host}:{args.port}")
    print(f"API docs available at http://{args.host}:{args.port}/docs")
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    return subprocess.run([sys.executable, "-m", "pytest", *args.pytest_args]).returncode


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    from notification_service.demo import SCENARIOS

    parser = argparse.ArgumentParser(
        prog="crm-events",
        description="CRM domain event services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:")[1],
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    demo = subparsers.add_parser("demo", help="Run a demo scenario in one process")
    demo.add_argument("scenario", choices=[*SCENARIOS, "all"])
    demo.add_argument("--log-level", default="INFO")
    demo.set_defaults(handler=cmd_demo)

    consume = subparsers.add_parser("consume", help="Run the notification worker")
    consume.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    consume.set_defaults(handler=cmd_consume)

    publish = subparsers.add_parser("publish", help="Publish one event")
    publish.add_argument("domain", choices=[d.value for d in Domain])
    publish.add_argument("event", help="Event JSON, or @path to read it from a file")
    publish.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    publish.set_defaults(handler=cmd_publish)

    topology = subparsers.add_parser("topology", help="Show queues and bindings")
    topology.set_defaults(handler=cmd_topology)

    serve = subparsers.add_parser("serve", help="Start the notification API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve.set_defaults(handler=cmd_serve)

    test = subparsers.add_parser("test", help="Run the test suite")
    test.add_argument("pytest_args", nargs=argparse.REMAINDER, help="Passed through to pytest")
    test.set_defaults(handler=cmd_test)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "handler"):
        parser.print_help()
        sys.exit(1)
    sys.exit(args.handler(args))


if __name__ == "__main__":
    main()
