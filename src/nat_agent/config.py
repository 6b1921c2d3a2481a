"""YAML configuration loader for the NAT route agent."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from nat_routing.ec2 import ProviderSettings

DEFAULT_NATS_URI = "nats://127.0.0.1:4222"
NATS_URI_ENV = "NATS_URI"


@dataclass
class BusConfig:
    uri: str = DEFAULT_NATS_URI
    queue: str = ""
    name: str = "nat-route-agent"
    publish_timeout: float = 10.0


@dataclass
class AgentConfig:
    bus: BusConfig = field(default_factory=BusConfig)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    workers: int = 8


def _parse_bus(section: dict) -> BusConfig:
    return BusConfig(
        uri=str(section.get("uri", DEFAULT_NATS_URI)),
        queue=str(section.get("queue") or ""),
        name=str(section.get("name", "nat-route-agent")),
        publish_timeout=float(section.get("publish_timeout", 10.0)),
    )


def _parse_provider(section: dict) -> ProviderSettings:
    max_attempts = int(section.get("max_attempts", 1))
    if max_attempts < 1:
        raise ValueError("provider 'max_attempts' must be at least 1")
    endpoint_url = section.get("endpoint_url")
    return ProviderSettings(
        connect_timeout=float(section.get("connect_timeout", 5.0)),
        read_timeout=float(section.get("read_timeout", 30.0)),
        max_attempts=max_attempts,
        endpoint_url=str(endpoint_url) if endpoint_url else None,
    )


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def load_config(
    path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> AgentConfig:
    """Load the agent configuration.

    ``path`` is optional: without it every setting takes its default. The
    ``NATS_URI`` environment variable wins over the file so container
    deployments can point the agent at a bus without shipping a config.
    """

    environ = os.environ if environ is None else environ

    data: dict = {}
    if path is not None:
        loaded = yaml.safe_load(Path(path).read_text())
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError("Agent configuration must be a mapping")
        data = loaded or {}

    bus = _parse_bus(_section(data, "bus"))
    provider = _parse_provider(_section(data, "provider"))

    workers = int(data.get("workers", 8))
    if workers < 1:
        raise ValueError("'workers' must be at least 1")

    uri = environ.get(NATS_URI_ENV)
    if uri:
        bus.uri = uri

    return AgentConfig(bus=bus, provider=provider, workers=workers)
