"""Converge subnet routing onto a NAT gateway.

For every routed subnet of an :class:`~nat_routing.event.Event`, in the order
given, the reconciler makes sure a route table is associated with the subnet
and that the table has ``0.0.0.0/0`` pointing at the event's NAT gateway. Only
the calls needed to close the gap are issued, so re-running a request against
converged state is free of mutations.

The run is fail-fast: the first provider error propagates and the remaining
subnets are left untouched. Nothing is rolled back. In particular a route
table whose association failed stays behind, unassociated; it is logged so it
can be swept manually.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import List, Optional

from .event import Event
from .locks import SubnetLocks
from .provider import DEFAULT_ROUTE_CIDR, RouteTable, RouteTableProvider

LOG = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What a successful run changed, per subnet."""

    created_tables: List[str] = field(default_factory=list)
    created_routes: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_tables or self.created_routes)


class NatRouteReconciler:
    """Drive every routed subnet of an event to the desired routing state."""

    def __init__(
        self,
        provider: RouteTableProvider,
        locks: Optional[SubnetLocks] = None,
    ) -> None:
        self._provider = provider
        self._locks = locks

    def reconcile(self, event: Event) -> ReconcileReport:
        report = ReconcileReport()
        for subnet_id in event.subnet_ids:
            guard = self._locks.hold(subnet_id) if self._locks else nullcontext()
            with guard:
                self._reconcile_subnet(event, subnet_id, report)

        LOG.info(
            "reconciled %d subnet(s) for %s: %d table(s) created, %d route(s) created",
            len(event.subnet_ids),
            event.nat_gateway_aws_id,
            len(report.created_tables),
            len(report.created_routes),
        )
        return report

    # ------------------------------------------------------------------
    # Per-subnet steps
    # ------------------------------------------------------------------
    def _reconcile_subnet(
        self, event: Event, subnet_id: str, report: ReconcileReport
    ) -> None:
        table = self.ensure_route_table(event.vpc_id, subnet_id, report)

        if table.has_default_route_to(event.nat_gateway_aws_id):
            LOG.debug(
                "subnet %s already routes %s via %s",
                subnet_id,
                DEFAULT_ROUTE_CIDR,
                event.nat_gateway_aws_id,
            )
            report.unchanged.append(subnet_id)
            return

        self._provider.create_route(
            table.route_table_id, DEFAULT_ROUTE_CIDR, event.nat_gateway_aws_id
        )
        report.created_routes.append(subnet_id)

    def ensure_route_table(
        self,
        vpc_id: str,
        subnet_id: str,
        report: Optional[ReconcileReport] = None,
    ) -> RouteTable:
        """Return the table associated with ``subnet_id``, creating one if needed."""

        table = self._provider.find_route_table_by_subnet(subnet_id)
        if table is not None:
            return table

        table = self._provider.create_route_table(vpc_id)
        try:
            self._provider.associate_route_table(table.route_table_id, subnet_id)
        except Exception:
            LOG.warning(
                "route table %s was created in %s but could not be associated "
                "with subnet %s; it is left behind",
                table.route_table_id,
                vpc_id,
                subnet_id,
            )
            raise

        if report is not None:
            report.created_tables.append(subnet_id)
        return table
