import time
from typing import Dict, List, Optional, Tuple

import pytest

from nat_routing.event import Event
from nat_routing.provider import Route, RouteTable, RouteTableProvider

NAT_GATEWAY = "nat-0000000000000000a"


class RecordingPublisher:
    def __init__(self):
        self.messages: List[Tuple[str, bytes]] = []

    def publish(self, subject: str, data: bytes) -> None:
        self.messages.append((subject, data))

    def on(self, subject: str) -> List[bytes]:
        return [data for subj, data in self.messages if subj == subject]


class FakeProvider(RouteTableProvider):
    """In-memory route tables keyed by ID, with subnet associations."""

    def __init__(self, delay: float = 0.0):
        self.calls: List[tuple] = []
        self.errors: Dict[Tuple[str, str], Exception] = {}
        self.delay = delay
        self._tables: Dict[str, dict] = {}
        self._associations: Dict[str, str] = {}
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq:08d}"

    def _maybe_fail(self, operation: str, key: str) -> None:
        exc = self.errors.get((operation, key))
        if exc is not None:
            raise exc

    def _snapshot(self, table_id: str) -> RouteTable:
        table = self._tables[table_id]
        return RouteTable(
            route_table_id=table_id,
            vpc_id=table["vpc_id"],
            routes=tuple(table["routes"]),
            associations=tuple(
                subnet for subnet, rt in self._associations.items() if rt == table_id
            ),
        )

    def add_table(self, subnet_id: str, routes=(), vpc_id: str = "vpc-0000000") -> str:
        table_id = self._next_id("rtb")
        self._tables[table_id] = {"vpc_id": vpc_id, "routes": list(routes)}
        self._associations[subnet_id] = table_id
        return table_id

    def table_for(self, subnet_id: str) -> Optional[RouteTable]:
        table_id = self._associations.get(subnet_id)
        return self._snapshot(table_id) if table_id else None

    @property
    def table_count(self) -> int:
        return len(self._tables)

    @property
    def mutations(self) -> List[tuple]:
        return [call for call in self.calls if call[0] != "find_route_table_by_subnet"]

    def find_route_table_by_subnet(self, subnet_id):
        self.calls.append(("find_route_table_by_subnet", subnet_id))
        self._maybe_fail("find_route_table_by_subnet", subnet_id)
        if self.delay:
            time.sleep(self.delay)
        return self.table_for(subnet_id)

    def create_route_table(self, vpc_id):
        self.calls.append(("create_route_table", vpc_id))
        self._maybe_fail("create_route_table", vpc_id)
        table_id = self._next_id("rtb")
        self._tables[table_id] = {
            "vpc_id": vpc_id,
            "routes": [Route(destination_cidr_block="10.0.0.0/16", gateway_id="local")],
        }
        return self._snapshot(table_id)

    def associate_route_table(self, route_table_id, subnet_id):
        self.calls.append(("associate_route_table", route_table_id, subnet_id))
        self._maybe_fail("associate_route_table", subnet_id)
        self._associations[subnet_id] = route_table_id
        return self._next_id("rtbassoc")

    def create_route(self, route_table_id, destination_cidr, nat_gateway_id):
        self.calls.append(("create_route", route_table_id, destination_cidr, nat_gateway_id))
        self._maybe_fail("create_route", route_table_id)
        self._tables[route_table_id]["routes"].append(
            Route(destination_cidr_block=destination_cidr, nat_gateway_id=nat_gateway_id)
        )


def build_event(publisher=None, **overrides) -> Event:
    fields = dict(
        uuid="test",
        batch_id="test",
        provider_type="aws",
        vpc_id="vpc-0000000",
        datacenter_region="eu-west-1",
        datacenter_access_key="key",
        datacenter_access_token="token",
        public_network_aws_id="subnet-00000000",
        routed_network_aws_ids=["subnet-00000001"],
        nat_gateway_aws_id=NAT_GATEWAY,
    )
    fields.update(overrides)
    return Event(publisher=publisher, **fields)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
