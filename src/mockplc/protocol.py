# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""JSON transport for the mock PLC.

Each client connection gets a PLCProtocol. Frames are JSON objects written
back to back; the protocol decodes them into Requests, hands them to the
dispatcher and writes one response frame per request. Notification pushes
are written to the subscribing connection.

Request frame:
    {"cmd": "read", "indexGroup": 1, "indexOffset": 2, "length": 4, "invokeId": 7}

Response frames:
    {"cmd": "read", "invokeId": 7, "success": true, "data": "0000c842"}
    {"cmd": "read", "invokeId": 7, "success": false, "errorCode": 1808}
"""

import asyncio
import codecs
import json
import logging
from typing import Callable, Optional

from .const import (
    CMD_NOTIFICATION,
    FIELD_CMD,
    FIELD_CYCLE_TIME,
    FIELD_DATA,
    FIELD_DEVICE_INFO,
    FIELD_ERROR,
    FIELD_ERROR_CODE,
    FIELD_HANDLE,
    FIELD_INDEX_GROUP,
    FIELD_INDEX_OFFSET,
    FIELD_INVOKE_ID,
    FIELD_LENGTH,
    FIELD_STATE,
    FIELD_SUCCESS,
    FIELD_TIMESTAMP,
    VALUE_SIZE,
    ErrorCode,
    RequestKind,
)
from .dispatcher import ProtocolDispatcher, Request, Response

logger = logging.getLogger(__name__)

# Largest buffered partial frame before the buffer is discarded
MAX_BUFFER_SIZE = 64 * 1024


class FrameError(ValueError):
    """A frame could not be decoded into a request."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.DEVICE_ERROR):
        super().__init__(message)
        self.code = code


def is_int(value) -> bool:
    """True for JSON integers; bools and floats are rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


def _int_field(message: dict, field: str, default: int, code: ErrorCode) -> int:
    value = message.get(field)
    if value is None:
        return default
    if not is_int(value):
        raise FrameError(f"Invalid {field}: {value!r}", code)
    return value


def decode_request(message: dict) -> Request:
    """Decode a JSON frame into a Request.

    Numeric fields must be JSON integers. A non-integer address field is
    reported as SYMBOL_NOT_FOUND, a non-integer handle as
    INVALID_NOTIFICATION_HANDLE and a non-integer cycle time as
    INVALID_PARAMETER.

    Raises:
        FrameError: if the frame is not a valid request.
    """
    cmd = message.get(FIELD_CMD)
    try:
        kind = RequestKind(cmd)
    except (TypeError, ValueError):
        raise FrameError(f"Unknown cmd: {cmd!r}", ErrorCode.SERVICE_NOT_SUPPORTED)

    try:
        data = bytes.fromhex(message.get(FIELD_DATA) or "")
    except (TypeError, ValueError) as e:
        raise FrameError(f"Invalid {cmd} data: {e}")

    return Request(
        kind=kind,
        index_group=_int_field(message, FIELD_INDEX_GROUP, 0, ErrorCode.SYMBOL_NOT_FOUND),
        index_offset=_int_field(message, FIELD_INDEX_OFFSET, 0, ErrorCode.SYMBOL_NOT_FOUND),
        length=_int_field(message, FIELD_LENGTH, VALUE_SIZE, ErrorCode.INVALID_SIZE),
        data=data,
        cycle_time_ms=_int_field(message, FIELD_CYCLE_TIME, 0, ErrorCode.INVALID_PARAMETER),
        handle=_int_field(message, FIELD_HANDLE, 0, ErrorCode.INVALID_NOTIFICATION_HANDLE),
        invoke_id=_int_field(message, FIELD_INVOKE_ID, 0, ErrorCode.DEVICE_ERROR),
    )


def encode_response(response: Response) -> dict:
    """Encode a Response as a JSON frame dict."""
    msg = {
        FIELD_CMD: response.kind.value if response.kind else None,
        FIELD_INVOKE_ID: response.invoke_id,
        FIELD_SUCCESS: response.success,
    }
    if not response.success:
        msg[FIELD_ERROR_CODE] = int(response.error)
        msg[FIELD_ERROR] = response.error.name
        return msg

    if response.data:
        msg[FIELD_DATA] = response.data.hex()
    if response.handle is not None:
        msg[FIELD_HANDLE] = response.handle
    if response.info is not None:
        key = FIELD_STATE if response.kind is RequestKind.READ_STATE else FIELD_DEVICE_INFO
        msg[key] = response.info
    return msg


class PLCProtocol(asyncio.Protocol):
    """One client connection to the simulator."""

    def __init__(
        self,
        dispatcher: ProtocolDispatcher,
        on_disconnect: Optional[Callable[["PLCProtocol"], None]] = None,
    ):
        self.dispatcher = dispatcher
        self.on_disconnect = on_disconnect
        self.transport: Optional[asyncio.Transport] = None
        self.peer = None
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def connection_made(self, transport):
        self.transport = transport
        self.peer = transport.get_extra_info("peername")
        logger.info(f"Client connected: {self.peer}")

    def connection_lost(self, exc):
        logger.info(f"Client disconnected: {self.peer}")
        self.transport = None
        if self.on_disconnect:
            self.on_disconnect(self)

    @property
    def connected(self) -> bool:
        return self.transport is not None and not self.transport.is_closing()

    def data_received(self, data: bytes):
        self._buffer += self._decoder.decode(data)

        while self._buffer:
            self._buffer = self._buffer.lstrip()
            if not self._buffer:
                break
            if not self._buffer.startswith("{"):
                # Skip junk up to the next frame
                start = self._buffer.find("{")
                logger.warning(f"Discarding unframed data from {self.peer}")
                self._buffer = self._buffer[start:] if start >= 0 else ""
                continue

            end = self._find_json_end(self._buffer)
            if end is None:
                if len(self._buffer) > MAX_BUFFER_SIZE:
                    logger.warning(f"Frame too large from {self.peer}, discarding")
                    self._buffer = ""
                break

            frame, self._buffer = self._buffer[:end], self._buffer[end:]
            self._process_frame(frame)

    def _process_frame(self, frame: str):
        message: dict = {}
        try:
            decoded = json.loads(frame)
            if not isinstance(decoded, dict):
                raise FrameError("Frame is not an object")
            message = decoded
            request = decode_request(message)
        except (json.JSONDecodeError, RecursionError, FrameError) as e:
            logger.warning(f"Bad frame from {self.peer}: {type(e).__name__}: {e}")
            code = getattr(e, "code", ErrorCode.DEVICE_ERROR)
            cmd = message.get(FIELD_CMD)
            invoke_id = message.get(FIELD_INVOKE_ID)
            self._send({
                FIELD_CMD: cmd if isinstance(cmd, str) else None,
                FIELD_INVOKE_ID: invoke_id if is_int(invoke_id) else 0,
                FIELD_SUCCESS: False,
                FIELD_ERROR_CODE: int(code),
                FIELD_ERROR: code.name,
            })
            return

        request.target = self
        response = self.dispatcher.dispatch(request)
        self._send(encode_response(response))

    @staticmethod
    def _find_json_end(text: str) -> Optional[int]:
        """Index just past the first complete JSON object in ``text``.

        Returns None if ``text`` does not start with a complete object.
        """
        if not text or text[0] != "{":
            return None
        depth = 0
        in_string = False
        escaped = False
        for i, char in enumerate(text):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return i + 1
        return None

    def _send(self, msg: dict):
        if not self.connected:
            logger.debug(f"Dropping message for closed connection: {msg.get(FIELD_CMD)}")
            return
        self.transport.write(json.dumps(msg).encode("utf-8"))

    def send_notification(self, handle: int, payload: bytes, timestamp: float):
        """Push a notification frame to this client."""
        if not self.connected:
            raise ConnectionError(f"Client {self.peer} is not connected")
        self._send({
            FIELD_CMD: CMD_NOTIFICATION,
            FIELD_HANDLE: handle,
            FIELD_DATA: payload.hex(),
            FIELD_TIMESTAMP: timestamp,
        })
