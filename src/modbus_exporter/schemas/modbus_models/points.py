"""Modbus register definition models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, StrictInt, StrictStr, field_validator, model_validator

# Number of 16-bit words addressable per register kind
ADDRESS_SPACE = 65536


class RegisterKind(str, Enum):
    """Protocol-level register category (selects the Modbus read function)."""
    INPUT = "input"      # function code 4, read-only
    HOLDING = "holding"  # function code 3, read/write


class DataType(str, Enum):
    """Interpretation of the raw register words."""
    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    FLOAT32 = "float32"

    @property
    def span(self) -> int:
        """Number of 16-bit words occupied by a value of this type."""
        return DATA_TYPE_SPANS[self]


DATA_TYPE_SPANS = {
    DataType.UINT16: 1,
    DataType.INT16: 1,
    DataType.UINT32: 2,
    DataType.INT32: 2,
    DataType.FLOAT32: 2,
}


def _reject_non_numeric(v: Any) -> Any:
    # bool is an int subclass and numeric strings coerce silently in lax mode
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError("must be a number")
    return v


class RegisterEntry(BaseModel):
    """
    One entry of a register schema document, exactly as written on disk.

    Unknown fields are rejected so that typos ("scal", "adress") fail loudly
    instead of silently falling back to defaults.
    """
    name: StrictStr = Field(..., min_length=1, description="Unique register name, used as metric name")
    address: StrictInt = Field(..., ge=0, le=ADDRESS_SPACE - 1, description="Starting register offset")
    type: DataType = Field(..., description="Data type interpretation")
    scale: float = Field(default=1.0, allow_inf_nan=False, description="Multiplier applied after decoding")
    unit: StrictStr = Field(default="", description="Physical unit (e.g. 'V', 'A', 'kW')")

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("scale", mode="before")
    @classmethod
    def validate_scale(cls, v: Any) -> Any:
        return _reject_non_numeric(v)


class RegisterDefinition(BaseModel):
    """
    Validated, immutable description of a single register point.

    Definitions are hashable so whole schemas can be compared as sets.
    """
    name: str
    address: int = Field(..., ge=0, le=ADDRESS_SPACE - 1)
    register_kind: RegisterKind
    data_type: DataType
    scale: float = Field(default=1.0, allow_inf_nan=False)
    unit: str = ""

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_address_range(self) -> "RegisterDefinition":
        if self.address + self.span > ADDRESS_SPACE:
            raise ValueError(
                f"register '{self.name}' at address {self.address} with span {self.span} "
                f"runs past the end of the address space"
            )
        return self

    @property
    def span(self) -> int:
        return self.data_type.span

    @property
    def end_address(self) -> int:
        """First address after this register (exclusive bound)."""
        return self.address + self.span

    def overlaps(self, other: "RegisterDefinition") -> bool:
        """True if both definitions share a kind and at least one word."""
        return (
            self.register_kind == other.register_kind
            and self.address < other.end_address
            and other.address < self.end_address
        )

    @classmethod
    def from_entry(cls, entry: RegisterEntry, kind: RegisterKind) -> "RegisterDefinition":
        return cls(
            name=entry.name,
            address=entry.address,
            register_kind=kind,
            data_type=entry.type,
            scale=entry.scale,
            unit=entry.unit,
        )

    def to_entry(self) -> RegisterEntry:
        return RegisterEntry(
            name=self.name,
            address=self.address,
            type=self.data_type,
            scale=self.scale,
            unit=self.unit,
        )
