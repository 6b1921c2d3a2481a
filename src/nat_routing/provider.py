"""Provider seam for route table operations.

The reconciler only ever needs four remote calls. Keeping them behind
:class:`RouteTableProvider` means the algorithm can be exercised against an
in-memory fake in tests and is not tied to a particular SDK.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

DEFAULT_ROUTE_CIDR = "0.0.0.0/0"


@dataclass(frozen=True)
class Route:
    """A single route entry.

    Attributes
    ----------
    destination_cidr_block:
        IPv4 destination of the route. IPv6-only and prefix-list routes carry
        an empty string here.
    nat_gateway_id:
        Next hop when the route targets a NAT gateway.
    gateway_id:
        Next hop for internet gateway and ``local`` routes.
    """

    destination_cidr_block: str = ""
    nat_gateway_id: Optional[str] = None
    gateway_id: Optional[str] = None

    def targets_nat_gateway(self, gateway_id: str) -> bool:
        return (
            self.destination_cidr_block == DEFAULT_ROUTE_CIDR
            and self.nat_gateway_id == gateway_id
        )


@dataclass(frozen=True)
class RouteTable:
    """Snapshot of a provider owned route table."""

    route_table_id: str
    vpc_id: str = ""
    routes: Sequence[Route] = field(default_factory=tuple)
    associations: Sequence[str] = field(default_factory=tuple)

    def has_default_route_to(self, gateway_id: str) -> bool:
        """Return ``True`` if ``0.0.0.0/0`` already points at ``gateway_id``."""

        return any(route.targets_nat_gateway(gateway_id) for route in self.routes)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "RouteTable":
        """Build a snapshot from an EC2 ``RouteTable`` response structure."""

        routes = tuple(
            Route(
                destination_cidr_block=entry.get("DestinationCidrBlock", ""),
                nat_gateway_id=entry.get("NatGatewayId"),
                gateway_id=entry.get("GatewayId"),
            )
            for entry in data.get("Routes", [])
        )
        associations = tuple(
            assoc["SubnetId"]
            for assoc in data.get("Associations", [])
            if assoc.get("SubnetId")
        )
        return cls(
            route_table_id=data["RouteTableId"],
            vpc_id=data.get("VpcId", ""),
            routes=routes,
            associations=associations,
        )


class RouteTableProvider(ABC):
    """Remote route table operations bound to one region and credential pair.

    Implementations surface provider errors unchanged; retries, if any, are
    the caller's business.
    """

    @abstractmethod
    def find_route_table_by_subnet(self, subnet_id: str) -> Optional[RouteTable]:
        """Return the table associated with ``subnet_id`` or ``None``."""

    @abstractmethod
    def create_route_table(self, vpc_id: str) -> RouteTable:
        """Create an empty route table inside ``vpc_id``."""

    @abstractmethod
    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str:
        """Bind ``route_table_id`` to ``subnet_id`` and return the association ID."""

    @abstractmethod
    def create_route(
        self, route_table_id: str, destination_cidr: str, nat_gateway_id: str
    ) -> None:
        """Add ``destination_cidr -> nat_gateway_id`` to ``route_table_id``."""
