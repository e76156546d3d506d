# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Protocol request dispatcher.

Every decoded request goes through ProtocolDispatcher.dispatch(), which
always returns a Response carrying either a success payload or one of the
ErrorCode values. No exception escapes dispatch().
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .const import (
    DEVICE_NAME,
    DEVICE_STATE,
    DEVICE_VERSION_BUILD,
    DEVICE_VERSION_MAJOR,
    DEVICE_VERSION_MINOR,
    VALUE_SIZE,
    AdsState,
    ErrorCode,
    RequestKind,
)
from .datastore import Datastore, NullDatastore
from .notifications import NotificationScheduler
from .patterns import decode_value, encode_value
from .registry import SensorRegistry, now_ms
from .state import Address

logger = logging.getLogger(__name__)


@dataclass
class Request:
    """A decoded protocol request."""

    kind: RequestKind
    index_group: int = 0  # module index
    index_offset: int = 0  # sensor index
    length: int = VALUE_SIZE
    data: bytes = b""
    cycle_time_ms: int = 0
    target: Any = None
    handle: int = 0
    invoke_id: int = 0

    @property
    def address(self) -> Address:
        return Address(self.index_group, self.index_offset)


@dataclass
class Response:
    """Result of a request: an error code, or a success payload."""

    kind: Optional[RequestKind]
    error: Optional[ErrorCode] = None
    data: bytes = b""
    handle: Optional[int] = None
    info: Optional[dict] = None
    invoke_id: int = 0

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, request: Request, **payload) -> "Response":
        return cls(kind=request.kind, invoke_id=request.invoke_id, **payload)

    @classmethod
    def fail(cls, request: Request, error: ErrorCode) -> "Response":
        return cls(kind=request.kind, error=error, invoke_id=request.invoke_id)


class RequestRegistry:
    """Maps request kinds to handler functions."""

    _handlers: dict[RequestKind, Callable] = {}

    @classmethod
    def register(cls, kind: RequestKind):
        """Decorator registering a dispatcher method for a request kind."""

        def decorator(func: Callable) -> Callable:
            cls._handlers[kind] = func
            return func

        return decorator

    @classmethod
    def get(cls, kind) -> Optional[Callable]:
        return cls._handlers.get(kind)

    @classmethod
    def kinds(cls) -> list[RequestKind]:
        return list(cls._handlers)


class ProtocolDispatcher:
    """Handles protocol requests against the sensor registry.

    Example:
        dispatcher = ProtocolDispatcher(registry, scheduler)
        response = dispatcher.dispatch(Request(RequestKind.READ, 1, 1))
        if response.success:
            value = decode_value(response.data)
    """

    def __init__(
        self,
        registry: SensorRegistry,
        scheduler: NotificationScheduler,
        datastore: Optional[Datastore] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.datastore = datastore or NullDatastore()
        self.clock = clock

    def dispatch(self, request: Request) -> Response:
        """Handle one request; always returns a Response."""
        handler = RequestRegistry.get(request.kind)
        if handler is None:
            logger.warning(f"Unsupported request kind: {request.kind!r}")
            return Response.fail(request, ErrorCode.SERVICE_NOT_SUPPORTED)

        try:
            return handler(self, request)
        except Exception as e:
            logger.error(f"Error handling {request.kind} request: {e}")
            return Response.fail(request, ErrorCode.DEVICE_ERROR)

    # =========================================================================
    # Value access
    # =========================================================================

    @RequestRegistry.register(RequestKind.READ)
    def _handle_read(self, request: Request) -> Response:
        sensor = self.registry.lookup(request.address)
        if sensor is None:
            logger.debug(f"Read request for unknown address {request.address}")
            return Response.fail(request, ErrorCode.SYMBOL_NOT_FOUND)
        logger.debug(f"Read {sensor.address.symbol} ({sensor.name}): {sensor.current_value}")
        return Response.ok(request, data=encode_value(sensor.current_value))

    @RequestRegistry.register(RequestKind.WRITE)
    def _handle_write(self, request: Request) -> Response:
        sensor = self.registry.lookup(request.address)
        if sensor is None:
            logger.debug(f"Write request for unknown address {request.address}")
            return Response.fail(request, ErrorCode.SYMBOL_NOT_FOUND)
        if len(request.data) < VALUE_SIZE:
            logger.debug(
                f"Write to {sensor.address.symbol} with {len(request.data)} bytes, "
                f"expected {VALUE_SIZE}"
            )
            return Response.fail(request, ErrorCode.INVALID_SIZE)

        value = decode_value(request.data)
        self.registry.write(sensor.address, value, self.clock())
        logger.info(f"Write {sensor.address.symbol} ({sensor.name}) = {value}")
        try:
            self.datastore.record_write(sensor)
        except Exception as e:
            logger.warning(f"Datastore write failed for {sensor.address.symbol}: {e}")
        return Response.ok(request)

    @RequestRegistry.register(RequestKind.READ_WRITE)
    def _handle_read_write(self, request: Request) -> Response:
        # The write payload is not applied
        sensor = self.registry.lookup(request.address)
        if sensor is None:
            return Response.fail(request, ErrorCode.SYMBOL_NOT_FOUND)
        return Response.ok(request, data=encode_value(sensor.current_value))

    # =========================================================================
    # Device
    # =========================================================================

    @RequestRegistry.register(RequestKind.READ_DEVICE_INFO)
    def _handle_read_device_info(self, request: Request) -> Response:
        return Response.ok(request, info={
            "deviceName": DEVICE_NAME,
            "majorVersion": DEVICE_VERSION_MAJOR,
            "minorVersion": DEVICE_VERSION_MINOR,
            "versionBuild": DEVICE_VERSION_BUILD,
        })

    @RequestRegistry.register(RequestKind.READ_STATE)
    def _handle_read_state(self, request: Request) -> Response:
        return Response.ok(request, info={
            "adsState": int(AdsState.RUN),
            "deviceState": DEVICE_STATE,
        })

    @RequestRegistry.register(RequestKind.WRITE_CONTROL)
    def _handle_write_control(self, request: Request) -> Response:
        logger.info(f"Write control received ({len(request.data)} bytes), ignoring")
        return Response.ok(request)

    # =========================================================================
    # Notifications
    # =========================================================================

    @RequestRegistry.register(RequestKind.ADD_NOTIFICATION)
    def _handle_add_notification(self, request: Request) -> Response:
        if request.address not in self.registry:
            return Response.fail(request, ErrorCode.SYMBOL_NOT_FOUND)
        if request.cycle_time_ms <= 0:
            return Response.fail(request, ErrorCode.INVALID_PARAMETER)
        subscription = self.scheduler.add(
            request.address, request.target, request.cycle_time_ms, self.clock()
        )
        return Response.ok(request, handle=subscription.handle)

    @RequestRegistry.register(RequestKind.DELETE_NOTIFICATION)
    def _handle_delete_notification(self, request: Request) -> Response:
        if not self.scheduler.remove(request.handle):
            return Response.fail(request, ErrorCode.INVALID_NOTIFICATION_HANDLE)
        return Response.ok(request)
