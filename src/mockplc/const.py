# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Constants for the mock PLC simulator.

Request kinds, ADS return codes, wire field names and default settings.
"""

from enum import Enum, IntEnum


class RequestKind(str, Enum):
    """Request kinds understood by the dispatcher.

    The value is the ``cmd`` string used on the wire.
    """

    READ = "read"
    WRITE = "write"
    READ_WRITE = "readWrite"
    READ_DEVICE_INFO = "readDeviceInfo"
    READ_STATE = "readState"
    WRITE_CONTROL = "writeControl"
    ADD_NOTIFICATION = "addNotification"
    DELETE_NOTIFICATION = "deleteNotification"


class ErrorCode(IntEnum):
    """ADS device return codes reported by the dispatcher."""

    DEVICE_ERROR = 0x700
    SERVICE_NOT_SUPPORTED = 0x701
    INVALID_SIZE = 0x705
    INVALID_PARAMETER = 0x70B
    SYMBOL_NOT_FOUND = 0x710
    INVALID_NOTIFICATION_HANDLE = 0x714


class AdsState(IntEnum):
    """Subset of ADS device states."""

    INVALID = 0
    IDLE = 1
    RESET = 2
    INIT = 3
    START = 4
    RUN = 5
    STOP = 6
    CONFIG = 15


# Device identity returned by READ_DEVICE_INFO
DEVICE_NAME = "Mock PLC Server"
DEVICE_VERSION_MAJOR = 1
DEVICE_VERSION_MINOR = 0
DEVICE_VERSION_BUILD = 1

# State returned by READ_STATE
DEVICE_STATE = 0

# Every module exposes exactly this many sensors
SENSORS_PER_MODULE = 3

# Value encoding: little-endian IEEE-754 float32
VALUE_FORMAT = "<f"
VALUE_SIZE = 4

# Timing defaults (milliseconds unless noted)
DEFAULT_UPDATE_INTERVAL_MS = 5000
DEFAULT_TICK_INTERVAL_MS = 100

# Transport bind defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORTS = (48898, 48899, 30012)
DEFAULT_BIND_ATTEMPTS = 3
DEFAULT_BIND_DELAY = 2.0

DEFAULT_CONFIG_FILE = "plc-config.json"

# Wire fields
FIELD_CMD = "cmd"
FIELD_INVOKE_ID = "invokeId"
FIELD_SUCCESS = "success"
FIELD_ERROR_CODE = "errorCode"
FIELD_ERROR = "error"
FIELD_INDEX_GROUP = "indexGroup"
FIELD_INDEX_OFFSET = "indexOffset"
FIELD_LENGTH = "length"
FIELD_DATA = "data"
FIELD_CYCLE_TIME = "cycleTime"
FIELD_HANDLE = "handle"
FIELD_DEVICE_INFO = "deviceInfo"
FIELD_STATE = "state"
FIELD_TIMESTAMP = "timestamp"

# Push frames use this cmd
CMD_NOTIFICATION = "notification"
