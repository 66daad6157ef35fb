"""Register schema container model."""

from typing import Optional

from pydantic import BaseModel, Field

from modbus_exporter.schemas.modbus_models.points import RegisterDefinition, RegisterKind


class RegisterSchema(BaseModel):
    """
    Immutable collection of register definitions.

    Definitions are kept sorted by (kind, address) so two schemas built from
    the same documents compare equal regardless of document order.
    """
    definitions: tuple[RegisterDefinition, ...] = Field(
        default=(), description="Register definitions, ordered by kind then address"
    )

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.definitions)

    def get_definitions_by_kind(self, kind: RegisterKind) -> list[RegisterDefinition]:
        """Filter definitions by register kind."""
        return [d for d in self.definitions if d.register_kind == kind]

    def get_definition_by_name(self, name: str) -> Optional[RegisterDefinition]:
        """Get a definition by its name."""
        for d in self.definitions:
            if d.name == name:
                return d
        return None

    def as_set(self) -> frozenset[RegisterDefinition]:
        return frozenset(self.definitions)

    @property
    def kinds(self) -> list[RegisterKind]:
        """Register kinds that have at least one definition, in enum order."""
        present = {d.register_kind for d in self.definitions}
        return [k for k in RegisterKind if k in present]
