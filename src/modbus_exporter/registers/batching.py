"""Register read batching.

Groups register definitions into contiguous block reads so a poll cycle
issues as few Modbus requests as possible.
"""

from __future__ import annotations

from typing import Iterable

from modbus_exporter.logging import get_logger
from modbus_exporter.schemas.modbus_models import RegisterDefinition, RegisterKind

logger = get_logger(__name__)

# Maximum number of registers a single read request may return (protocol limit)
MAX_REGISTERS_PER_READ = 125


class ReadRange:
    """A single block read covering one or more adjacent definitions."""

    def __init__(
        self,
        kind: RegisterKind,
        start_address: int,
        count: int,
        definitions: tuple[RegisterDefinition, ...],
    ) -> None:
        self.kind = kind
        self.start_address = start_address
        self.count = count
        self.definitions = definitions

    @property
    def end_address(self) -> int:
        return self.start_address + self.count

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReadRange):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.start_address == other.start_address
            and self.count == other.count
            and self.definitions == other.definitions
        )

    def __repr__(self) -> str:
        return (
            f"ReadRange({self.kind.value}, {self.start_address}, "
            f"count={self.count}, registers={len(self.definitions)})"
        )


def build_read_ranges(
    definitions: Iterable[RegisterDefinition],
    max_count: int = MAX_REGISTERS_PER_READ,
) -> list[ReadRange]:
    """Build contiguous read ranges from register definitions.

    A new range starts whenever the register kind changes, there is a gap
    between two definitions, or adding the next definition would exceed
    ``max_count`` registers.

    Args:
        definitions: Definitions to cover (any order)
        max_count: Maximum registers per read request

    Returns:
        List of ReadRange objects, sorted by kind then address
    """
    if max_count < 2:
        raise ValueError("max_count must allow at least one 32-bit register (2 words)")

    kind_order = {kind: i for i, kind in enumerate(RegisterKind)}
    ordered = sorted(definitions, key=lambda d: (kind_order[d.register_kind], d.address))

    ranges: list[ReadRange] = []
    current: list[RegisterDefinition] = []

    def flush() -> None:
        if not current:
            return
        start = current[0].address
        ranges.append(ReadRange(
            kind=current[0].register_kind,
            start_address=start,
            count=current[-1].end_address - start,
            definitions=tuple(current),
        ))
        current.clear()

    for definition in ordered:
        if current:
            previous = current[-1]
            if (
                definition.register_kind != previous.register_kind
                or definition.address != previous.end_address
                or definition.end_address - current[0].address > max_count
            ):
                flush()
        current.append(definition)
    flush()

    logger.debug(f"Built {len(ranges)} read range(s): {ranges}")
    return ranges
