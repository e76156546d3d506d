# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Mock PLC simulator server.

This module contains the PLCSimulator class, which wires the registry,
value refresher, notification scheduler and dispatcher together and serves
them over TCP.
"""

import asyncio
import logging
import random
from typing import Callable, Optional, Sequence

from .config import ConfigStore
from .const import (
    DEFAULT_BIND_ATTEMPTS,
    DEFAULT_BIND_DELAY,
    DEFAULT_HOST,
    DEFAULT_PORTS,
    DEFAULT_TICK_INTERVAL_MS,
)
from .datastore import Datastore, NullDatastore
from .dispatcher import ProtocolDispatcher, Request, Response
from .notifications import NotificationScheduler
from .protocol import PLCProtocol
from .refresher import ValueRefresher
from .registry import SensorRegistry, now_ms
from .retry import RetryExhausted, retry_candidates
from .state import Topology

logger = logging.getLogger(__name__)


class BindError(Exception):
    """The transport could not bind to any candidate port."""


class PLCSimulator:
    """Mock PLC server.

    Example:
        simulator = PLCSimulator(config=ConfigStore("plc-config.json"), ports=[48898])
        await simulator.start()

        response = simulator.execute(Request(RequestKind.READ, 1, 1))

        await simulator.stop()
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        ports: Sequence[int] = DEFAULT_PORTS,
        config: Optional[ConfigStore] = None,
        datastore: Optional[Datastore] = None,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        bind_attempts: int = DEFAULT_BIND_ATTEMPTS,
        bind_delay: float = DEFAULT_BIND_DELAY,
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
    ):
        self.host = host
        self.ports = list(ports)
        self.config = config or ConfigStore()
        self.datastore = datastore or NullDatastore()
        self.tick_interval_ms = tick_interval_ms
        self.bind_attempts = bind_attempts
        self.bind_delay = bind_delay
        self.clock = clock
        self.rng = rng

        self.topology: Optional[Topology] = None
        self.registry: Optional[SensorRegistry] = None
        self.refresher: Optional[ValueRefresher] = None
        self.scheduler: Optional[NotificationScheduler] = None
        self.dispatcher: Optional[ProtocolDispatcher] = None
        self.server: Optional[asyncio.Server] = None
        self.port: Optional[int] = None
        self.protocols: list[PLCProtocol] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Load config, build the registry, start timers and bind the transport.

        Raises:
            BindError: if no candidate port could be bound.
        """
        self.topology = self.config.load()

        rows = await self.datastore.fetch_sensor_rows()
        registry = None
        if rows:
            registry = SensorRegistry.from_rows(rows, self.clock(), rng=self.rng)
            if registry is None:
                logger.warning("Datastore rows unusable, building from topology")
        self.registry = registry or SensorRegistry.build(
            self.topology, self.clock(), rng=self.rng
        )

        self.refresher = ValueRefresher(
            self.registry,
            interval_ms=self.topology.update_interval_ms,
            clock=self.clock,
            rng=self.rng,
        )
        self.scheduler = NotificationScheduler(
            self.registry,
            push=self._push_notification,
            tick_interval_ms=self.tick_interval_ms,
            clock=self.clock,
        )
        self.dispatcher = ProtocolDispatcher(
            self.registry, self.scheduler, self.datastore, clock=self.clock
        )

        self.refresher.start()
        self.scheduler.start()

        try:
            _, (self.port, self.server) = await retry_candidates(
                self._bind,
                self.ports,
                max_attempts=self.bind_attempts,
                delay=self.bind_delay,
            )
        except RetryExhausted as e:
            await self.refresher.stop()
            await self.scheduler.stop()
            await self.datastore.close()
            raise BindError(f"Could not bind {self.host} on any of {self.ports}") from e

        self._running = True
        logger.info(
            f"Mock PLC listening on {self.host}:{self.port} "
            f"({len(self.registry)} sensors in {self.registry.module_count} modules)"
        )

    async def stop(self):
        """Stop the server, timers and client connections."""
        self._running = False

        if self.refresher:
            await self.refresher.stop()
        if self.scheduler:
            await self.scheduler.stop()

        for protocol in list(self.protocols):
            if protocol.transport:
                protocol.transport.close()
        self.protocols.clear()

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Mock PLC stopped")

        await self.datastore.close()

    async def _bind(self, port: int) -> tuple[int, asyncio.Server]:
        loop = asyncio.get_running_loop()
        server = await loop.create_server(self._protocol_factory, self.host, port)
        bound_port = server.sockets[0].getsockname()[1] if server.sockets else port
        return bound_port, server

    def _protocol_factory(self) -> PLCProtocol:
        protocol = PLCProtocol(self.dispatcher, on_disconnect=self._handle_disconnect)
        self.protocols.append(protocol)
        return protocol

    def _handle_disconnect(self, protocol: PLCProtocol):
        if protocol in self.protocols:
            self.protocols.remove(protocol)
        if self.scheduler:
            self.scheduler.remove_target(protocol)

    def _push_notification(self, target, handle: int, payload: bytes, timestamp: float):
        if not isinstance(target, PLCProtocol):
            # Local subscribers (console, tests) pass a callable
            target(handle, payload, timestamp)
            return
        target.send_notification(handle, payload, timestamp)

    # =========================================================================
    # Local access
    # =========================================================================

    def execute(self, request: Request) -> Response:
        """Dispatch a request locally, bypassing the transport."""
        if self.dispatcher is None:
            raise RuntimeError("Simulator is not started")
        return self.dispatcher.dispatch(request)

    def refresh(self):
        """Force an immediate value refresh."""
        if self.refresher is None:
            raise RuntimeError("Simulator is not started")
        self.refresher.refresh()
