"""boto3 backed :class:`~nat_routing.provider.RouteTableProvider`."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config

from .event import Event
from .provider import RouteTable, RouteTableProvider

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSettings:
    """Client level knobs shared by every request.

    ``max_attempts`` counts the initial call, so the default of ``1`` means
    botocore never retries on our behalf.
    """

    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    max_attempts: int = 1
    endpoint_url: Optional[str] = None

    def to_botocore(self) -> Config:
        return Config(
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"total_max_attempts": self.max_attempts, "mode": "standard"},
        )


class EC2RouteTableProvider(RouteTableProvider):
    """Route table operations on top of an EC2 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def find_route_table_by_subnet(self, subnet_id: str) -> Optional[RouteTable]:
        resp = self._client.describe_route_tables(
            Filters=[{"Name": "association.subnet-id", "Values": [subnet_id]}]
        )
        tables = resp.get("RouteTables", [])
        if not tables:
            LOG.debug("no route table associated with subnet %s", subnet_id)
            return None
        return RouteTable.from_api(tables[0])

    def create_route_table(self, vpc_id: str) -> RouteTable:
        resp = self._client.create_route_table(VpcId=vpc_id)
        table = RouteTable.from_api(resp["RouteTable"])
        LOG.info("created route table %s in %s", table.route_table_id, vpc_id)
        return table

    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str:
        resp = self._client.associate_route_table(
            RouteTableId=route_table_id, SubnetId=subnet_id
        )
        LOG.info("associated route table %s with subnet %s", route_table_id, subnet_id)
        return resp["AssociationId"]

    def create_route(
        self, route_table_id: str, destination_cidr: str, nat_gateway_id: str
    ) -> None:
        self._client.create_route(
            RouteTableId=route_table_id,
            DestinationCidrBlock=destination_cidr,
            NatGatewayId=nat_gateway_id,
        )
        LOG.info(
            "created route %s -> %s on %s", destination_cidr, nat_gateway_id, route_table_id
        )


def build_ec2_provider(
    event: Event, settings: Optional[ProviderSettings] = None
) -> EC2RouteTableProvider:
    """Create a provider bound to the region and credentials carried by ``event``."""

    settings = settings or ProviderSettings()
    client = boto3.client(
        "ec2",
        region_name=event.datacenter_region,
        aws_access_key_id=event.datacenter_access_key,
        aws_secret_access_key=event.datacenter_access_token,
        endpoint_url=settings.endpoint_url,
        config=settings.to_botocore(),
    )
    return EC2RouteTableProvider(client)
