"""Entry point for the NAT route agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path

import nats

from nat_routing.ec2 import build_ec2_provider
from nat_routing.locks import SubnetLocks

from .bus import NatsPublisher, NatSubscription
from .config import AgentConfig, load_config
from .handler import NatUpdateHandler

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


async def run_agent(config: AgentConfig, stop_event: asyncio.Event) -> None:
    client = await nats.connect(servers=[config.bus.uri], name=config.bus.name)
    LOG.info("connected to %s", config.bus.uri)

    publisher = NatsPublisher(
        client, asyncio.get_running_loop(), timeout=config.bus.publish_timeout
    )
    handler = NatUpdateHandler(
        publisher,
        partial(build_ec2_provider, settings=config.provider),
        locks=SubnetLocks(),
    )

    with ThreadPoolExecutor(
        max_workers=config.workers, thread_name_prefix="nat-update"
    ) as executor:
        subscription = NatSubscription(
            client, handler, executor, queue=config.bus.queue
        )
        await subscription.start()
        try:
            await stop_event.wait()
        finally:
            await subscription.stop()

    await client.drain()


async def _serve(config: AgentConfig) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _shutdown(signum: int) -> None:  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _shutdown, signum)

    await run_agent(config, stop_event)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the NAT route agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument(
        "--nats-uri",
        default=None,
        help="NATS server URI (overrides NATS_URI and the config file)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    if args.nats_uri:
        config.bus.uri = args.nats_uri

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        pass

    LOG.info("nat route agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
