"""Request model and terminal reporting for NAT route updates."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

LOG = logging.getLogger(__name__)

SUBJECT = "nat.update.aws"
DONE_SUBJECT = f"{SUBJECT}.done"
ERROR_SUBJECT = f"{SUBJECT}.error"


class Publisher(Protocol):
    """Anything able to push a payload onto a bus subject."""

    def publish(self, subject: str, data: bytes) -> None:
        ...


class EventError(Exception):
    """Base class for request level failures."""


class MalformedEventError(EventError):
    """The inbound payload could not be decoded into an event."""


class EventValidationError(EventError):
    """A required field is missing; ``message`` is reported verbatim."""

    message = "Event invalid"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class DatacenterIDInvalid(EventValidationError):
    message = "Datacenter VPC ID invalid"


class DatacenterRegionInvalid(EventValidationError):
    message = "Datacenter Region invalid"


class DatacenterCredentialsInvalid(EventValidationError):
    message = "Datacenter credentials invalid"


class NetworkIDInvalid(EventValidationError):
    message = "Network id invalid"


class RoutedNetworksEmpty(EventValidationError):
    message = "Routed networks are empty"


class ReportingError(EventError):
    """The event could not be serialised for its error report."""


# attribute -> wire name, in serialisation order
_WIRE_NAMES = {
    "uuid": "_uuid",
    "batch_id": "_batch_id",
    "provider_type": "_type",
    "vpc_id": "vpc_id",
    "datacenter_region": "datacenter_region",
    "datacenter_access_key": "datacenter_access_key",
    "datacenter_access_token": "datacenter_access_token",
    "public_network": "public_network",
    "public_network_aws_id": "public_network_aws_id",
    "routed_networks": "routed_networks",
    "routed_network_aws_ids": "routed_networks_aws_ids",
    "nat_gateway_aws_id": "nat_gateway_aws_id",
    "nat_gateway_allocation_id": "nat_gateway_allocation_id",
    "nat_gateway_allocation_ip": "nat_gateway_allocation_ip",
    "internet_gateway_id": "internet_gateway_id",
    "error_message": "error",
}

_LIST_FIELDS = frozenset({"routed_networks", "routed_network_aws_ids"})


def _decode_string(name: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field '{name}' must be a string, got {type(value).__name__}")
    return value


def _decode_list(name: str, value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(v is None or isinstance(v, str) for v in value):
        raise ValueError(f"field '{name}' must be a list of strings")
    return ["" if v is None else v for v in value]


@dataclass
class Event:
    """A single NAT route update request.

    The event carries everything needed to talk to the provider (region and a
    static credential pair) together with the desired state: the subnets
    listed in ``routed_network_aws_ids`` must route ``0.0.0.0/0`` through
    ``nat_gateway_aws_id``.

    ``publisher`` is the bus the terminal reports go to. It is not part of
    the wire format.
    """

    publisher: Optional[Publisher] = field(default=None, repr=False, compare=False)

    uuid: str = ""
    batch_id: str = ""
    provider_type: str = ""
    vpc_id: str = ""
    datacenter_region: str = ""
    datacenter_access_key: str = field(default="", repr=False)
    datacenter_access_token: str = field(default="", repr=False)
    public_network: str = ""
    public_network_aws_id: str = ""
    routed_networks: Optional[List[str]] = None
    routed_network_aws_ids: Optional[List[str]] = None
    nat_gateway_aws_id: str = ""
    nat_gateway_allocation_id: str = ""
    nat_gateway_allocation_ip: str = ""
    internet_gateway_id: str = ""
    error_message: str = ""

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(
        cls, payload: Dict[str, Any], publisher: Optional[Publisher] = None
    ) -> "Event":
        event = cls(publisher=publisher)
        event._load(payload)
        return event

    def _load(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise ValueError("event payload must be a JSON object")
        for attr, wire in _WIRE_NAMES.items():
            if wire not in payload:
                continue
            if attr in _LIST_FIELDS:
                setattr(self, attr, _decode_list(wire, payload[wire]))
            else:
                setattr(self, attr, _decode_string(wire, payload[wire]))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, wire in _WIRE_NAMES.items():
            value = getattr(self, attr)
            if attr == "error_message" and not value:
                continue
            data[wire] = value
        return data

    def to_json(self) -> bytes:
        return json.dumps(
            self.to_dict(), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8", errors="replace")

    @property
    def subnet_ids(self) -> List[str]:
        return list(self.routed_network_aws_ids or [])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def process(self, data: bytes) -> None:
        """Load ``data`` into this event.

        Payloads that cannot be decoded are echoed verbatim to the error
        subject before :class:`MalformedEventError` is raised; there is no
        struct to annotate with an error message at that point.
        """

        try:
            self._load(json.loads(data))
        except (ValueError, TypeError, RecursionError) as exc:
            self._publish(ERROR_SUBJECT, data)
            raise MalformedEventError(str(exc)) from exc

    def validate(self) -> None:
        """Raise the first violated invariant, if any."""

        if not self.vpc_id:
            raise DatacenterIDInvalid()
        if not self.datacenter_region:
            raise DatacenterRegionInvalid()
        if not self.datacenter_access_key or not self.datacenter_access_token:
            raise DatacenterCredentialsInvalid()
        if not self.public_network_aws_id:
            raise NetworkIDInvalid()
        if not self.routed_network_aws_ids:
            raise RoutedNetworksEmpty()

    def error(self, exc: BaseException) -> None:
        """Report ``exc`` on the error subject."""

        LOG.error("Error: %s", exc)
        self.error_message = str(exc)
        try:
            data = self.to_json()
        except (TypeError, ValueError) as ser_exc:
            LOG.critical("unable to serialise error report for %s: %s", self.uuid, ser_exc)
            raise ReportingError(str(ser_exc)) from ser_exc
        self._publish(ERROR_SUBJECT, data)

    def complete(self) -> None:
        """Report success on the done subject."""

        try:
            data = self.to_json()
        except (TypeError, ValueError) as exc:
            self.error(exc)
            return
        self._publish(DONE_SUBJECT, data)

    def _publish(self, subject: str, data: bytes) -> None:
        if self.publisher is None:
            raise RuntimeError("event has no publisher attached")
        LOG.debug("publishing %d bytes to %s", len(data), subject)
        self.publisher.publish(subject, data)
