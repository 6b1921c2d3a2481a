"""Per-message pipeline: decode, validate, reconcile, report."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from nat_routing.event import Event, MalformedEventError, Publisher
from nat_routing.locks import SubnetLocks
from nat_routing.provider import RouteTableProvider
from nat_routing.reconciler import NatRouteReconciler

LOG = logging.getLogger(__name__)

ProviderFactory = Callable[[Event], RouteTableProvider]


class NatUpdateHandler:
    """Turn one inbound payload into exactly one terminal report.

    Every failure is resolved into a message on the error subject. The only
    exception that escapes :meth:`handle` is
    :class:`~nat_routing.event.ReportingError`, raised when even the error
    report cannot be built.
    """

    def __init__(
        self,
        publisher: Publisher,
        provider_factory: ProviderFactory,
        locks: Optional[SubnetLocks] = None,
    ) -> None:
        self._publisher = publisher
        self._provider_factory = provider_factory
        self._locks = locks

    def handle(self, data: bytes) -> Event:
        event = Event(publisher=self._publisher)

        try:
            event.process(data)
        except MalformedEventError as exc:
            LOG.warning("discarding malformed nat update: %s", exc)
            return event

        LOG.info(
            "received nat update %s for %s (%d subnet(s))",
            event.uuid,
            event.vpc_id,
            len(event.subnet_ids),
        )

        try:
            event.validate()
            provider = self._provider_factory(event)
            NatRouteReconciler(provider, locks=self._locks).reconcile(event)
        except Exception as exc:
            event.error(exc)
            return event

        event.complete()
        return event
