"""
Modbus TCP Client Module

Handles all Modbus TCP communication logic, connection management,
and error translation. The poll scheduler is the only owner of a
transport; sinks never see it.
"""

import asyncio
from typing import List, Optional, Protocol, Union

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException, ConnectionException
from pymodbus.pdu import ExceptionResponse

from modbus_exporter.logging import get_logger
from modbus_exporter.schemas.modbus_models import RegisterKind
from modbus_exporter.utils.exceptions import ReadError

logger = get_logger(__name__)

__all__ = ["RegisterTransport", "ModbusTransport", "translate_modbus_error"]

MODBUS_EXCEPTION_MESSAGES = {
    1: "Illegal function - The function code received is not supported",
    2: "Illegal data address - The data address received is not valid",
    3: "Illegal data value - The value in the request is not valid",
    4: "Server device failure - The server encountered an error processing the request",
    6: "Server device busy - The server is processing a long-duration command",
    10: "Gateway path unavailable",
    11: "Gateway target device failed to respond",
}


class RegisterTransport(Protocol):
    """Consumed interface: anything that can read a block of 16-bit registers."""

    async def read_registers(self, kind: RegisterKind, start_address: int, count: int) -> List[int]:
        ...


def translate_modbus_error(
    error: Union[Exception, ExceptionResponse],
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout_s: Optional[float] = None,
) -> str:
    """
    Translate Modbus exceptions into a readable message.

    Args:
        error: The exception (or error response) raised during a Modbus operation
        host: Modbus server hostname or IP address (for error messages)
        port: Modbus server port (for error messages)
        timeout_s: Configured timeout (for error messages)

    Returns:
        Human-readable error message
    """
    if isinstance(error, ConnectionException):
        return f"Failed to connect to Modbus server at {host}:{port}"
    if isinstance(error, ExceptionResponse):
        error_code = error.exception_code
        return MODBUS_EXCEPTION_MESSAGES.get(error_code, f"Modbus error code: {error_code}")
    if isinstance(error, ModbusException):
        return f"Modbus error: {error}"
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        if timeout_s is not None:
            return f"Request timed out after {timeout_s}s"
        return "Request timed out"
    return f"Unexpected error: {error}"


class ModbusTransport:
    """
    Async Modbus TCP transport for a single device.

    The underlying connection is opened lazily and re-opened on the next read
    after a connection loss.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        unit_id: int = 1,
        timeout_s: float = 5.0,
        retries: int = 3,
        client: Optional[AsyncModbusTcpClient] = None,
    ):
        self.host = host
        self.port = port
        self.unit_id = unit_id
        self.timeout_s = timeout_s
        self.retries = retries
        self._client = client or AsyncModbusTcpClient(
            host=host,
            port=port,
            timeout=timeout_s,
            retries=retries,
        )
        self._connect_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}/{self.unit_id}"

    @property
    def connected(self) -> bool:
        return bool(self._client.connected)

    async def connect(self) -> None:
        """
        Open the connection if it is not already open.

        Raises:
            ConnectionException: If the server cannot be reached
        """
        async with self._connect_lock:
            if self._client.connected:
                return
            logger.info(f"Connecting to Modbus server at {self.host}:{self.port}")
            if not await self._client.connect():
                raise ConnectionException(f"Failed to connect to Modbus server at {self.host}:{self.port}")

    def close(self) -> None:
        self._client.close()

    async def read_registers(self, kind: RegisterKind, start_address: int, count: int) -> List[int]:
        """
        Read a block of input or holding registers.

        Args:
            kind: Register kind (selects function code 4 or 3)
            start_address: Starting address
            count: Number of registers to read

        Returns:
            List of ``count`` unsigned 16-bit register values

        Raises:
            ReadError: On connection loss, Modbus exception response, short
                       response or timeout
        """
        kind = RegisterKind(kind)
        try:
            await self.connect()
            if kind == RegisterKind.HOLDING:
                result = await self._client.read_holding_registers(
                    address=start_address,
                    count=count,
                    device_id=self.unit_id,
                )
            else:
                result = await self._client.read_input_registers(
                    address=start_address,
                    count=count,
                    device_id=self.unit_id,
                )
            if result.isError():
                raise ReadError(
                    kind.value,
                    start_address,
                    count,
                    translate_modbus_error(result, self.host, self.port, self.timeout_s),
                )
        except ReadError:
            raise
        except (ModbusException, OSError, asyncio.TimeoutError) as e:
            raise ReadError(
                kind.value,
                start_address,
                count,
                translate_modbus_error(e, self.host, self.port, self.timeout_s),
            ) from e

        registers = list(result.registers)
        if len(registers) != count:
            raise ReadError(
                kind.value,
                start_address,
                count,
                f"device returned {len(registers)} register(s), expected {count}",
            )
        return registers

    async def health_check(self) -> tuple[bool, str]:
        """
        Perform a health check by reading a single holding register at address 0.

        Returns:
            Tuple of (success: bool, detail: str)
        """
        try:
            await self.read_registers(RegisterKind.HOLDING, 0, 1)
        except ReadError as e:
            return False, e.message
        return True, "Connection and read test successful"
