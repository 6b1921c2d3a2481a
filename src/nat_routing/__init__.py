"""NAT egress route reconciliation.

This package hosts the pieces needed to converge the routing of private
subnets onto a NAT gateway:

* :mod:`nat_routing.event` models the inbound request and owns the terminal
  ``done`` / ``error`` reports;
* :mod:`nat_routing.provider` defines the narrow seam over the cloud provider
  route table API, with :mod:`nat_routing.ec2` implementing it on top of
  boto3; and
* :mod:`nat_routing.reconciler` drives each subnet to "has a route table, and
  the table has a default route to the gateway" with the minimum number of
  mutating calls.

The message bus and process bootstrap live in the ``nat_agent`` package so the
library stays importable (and testable) without a NATS server.
"""

from .event import Event  # noqa: F401
from .reconciler import NatRouteReconciler  # noqa: F401

__all__ = ["Event", "NatRouteReconciler"]
