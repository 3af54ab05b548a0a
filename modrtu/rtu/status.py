"""
Modbus RTU status codes and attempt results
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from modrtu.config import (
    EXCEPTION_ILLEGAL_FUNCTION, EXCEPTION_ILLEGAL_DATA_ADDRESS,
    EXCEPTION_ILLEGAL_DATA_VALUE, EXCEPTION_SLAVE_DEVICE_FAILURE,
    EXCEPTION_ACKNOWLEDGE, EXCEPTION_SLAVE_DEVICE_BUSY,
    EXCEPTION_GATEWAY_PATH_UNAVAILABLE, EXCEPTION_GATEWAY_TARGET_NO_RESPONSE
)

logger = logging.getLogger(__name__)


class Status(Enum):
    """Result of a Modbus master operation"""

    OK = "Operation successful"
    ERROR = "Generic error"
    INVALID_PARAM = "Invalid parameter"
    NOT_INITIALIZED = "Port not initialized"
    ALREADY_INITIALIZED = "Port already initialized"
    BUSY = "Port busy"
    TIMEOUT = "Slave response timeout"
    CRC_ERROR = "CRC mismatch in response"
    UNEXPECTED_RESPONSE = "Unexpected response"
    ILLEGAL_FUNCTION = "Illegal function"
    ILLEGAL_DATA_ADDRESS = "Illegal data address"
    ILLEGAL_DATA_VALUE = "Illegal data value"
    SLAVE_DEVICE_FAILURE = "Slave device failure"
    ACKNOWLEDGE = "Acknowledge"
    SLAVE_BUSY = "Slave device busy"
    GATEWAY_PATH_UNAVAILABLE = "Gateway path unavailable"
    GATEWAY_TARGET_NO_RESPONSE = "Gateway target device failed to respond"

    @property
    def description(self) -> str:
        return self.value

    @property
    def is_exception(self) -> bool:
        """True for statuses that carry a slave exception response"""
        return self in _EXCEPTION_STATUSES

    def __bool__(self):
        return self is Status.OK

    def __str__(self):
        return self.name


EXCEPTION_CODE_STATUS = {
    EXCEPTION_ILLEGAL_FUNCTION: Status.ILLEGAL_FUNCTION,
    EXCEPTION_ILLEGAL_DATA_ADDRESS: Status.ILLEGAL_DATA_ADDRESS,
    EXCEPTION_ILLEGAL_DATA_VALUE: Status.ILLEGAL_DATA_VALUE,
    EXCEPTION_SLAVE_DEVICE_FAILURE: Status.SLAVE_DEVICE_FAILURE,
    EXCEPTION_ACKNOWLEDGE: Status.ACKNOWLEDGE,
    EXCEPTION_SLAVE_DEVICE_BUSY: Status.SLAVE_BUSY,
    EXCEPTION_GATEWAY_PATH_UNAVAILABLE: Status.GATEWAY_PATH_UNAVAILABLE,
    EXCEPTION_GATEWAY_TARGET_NO_RESPONSE: Status.GATEWAY_TARGET_NO_RESPONSE,
}

_EXCEPTION_STATUSES = frozenset(EXCEPTION_CODE_STATUS.values())


def exception_status(exception_code: int) -> Status:
    """Map a Modbus exception code to its status, ERROR for unknown codes"""
    return EXCEPTION_CODE_STATUS.get(exception_code, Status.ERROR)


@dataclass(frozen=True)
class Success:
    data: Any = None


@dataclass(frozen=True)
class RetryableError:
    status: Status


@dataclass(frozen=True)
class TerminalError:
    status: Status


Outcome = Union[Success, RetryableError, TerminalError]


def run_with_retries(attempt: Callable[[int], Outcome],
                     max_retries: int,
                     retry_delay: float = 0.0,
                     on_retry: Optional[Callable[[int, Status], None]] = None) -> Outcome:
    """
    Run attempt until it succeeds, fails terminally, or retries run out

    Args:
        attempt: Callable taking the zero-based attempt number
        max_retries: Additional attempts allowed after the first one
        retry_delay: Seconds to sleep before each retry
        on_retry: Called with (attempt number, status) before each retry

    Returns:
        Outcome: The first Success or TerminalError, otherwise the last RetryableError
    """
    outcome = attempt(0)
    for number in range(1, max_retries + 1):
        if not isinstance(outcome, RetryableError):
            break
        if on_retry is not None:
            on_retry(number, outcome.status)
        if retry_delay > 0:
            time.sleep(retry_delay)
        outcome = attempt(number)
    return outcome
