"""
Register schema loader.

Parses register-definition documents (one JSON array per register kind) into
a validated, immutable RegisterSchema. Validation is atomic: every problem in
every document is collected and reported in a single SchemaError, and no
partial schema is ever returned.

Document format:
    [
        {"name": "temp", "address": 0, "type": "float32", "scale": 1.0, "unit": "degC"},
        {"name": "flow", "address": 2, "type": "uint16", "scale": 0.1}
    ]
"""

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError

from modbus_exporter.logging import get_logger
from modbus_exporter.schemas.modbus_models import (
    RegisterDefinition,
    RegisterEntry,
    RegisterKind,
    RegisterSchema,
)
from modbus_exporter.utils.exceptions import SchemaError

logger = get_logger(__name__)

Document = Union[str, bytes, list, Any]

_entries_adapter = TypeAdapter(list[RegisterEntry])


def parse_register_kind(kind: Union[str, RegisterKind]) -> RegisterKind:
    """Convert an 'input'/'holding' token into a RegisterKind."""
    if isinstance(kind, RegisterKind):
        return kind
    try:
        return RegisterKind(str(kind).strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in RegisterKind)
        raise SchemaError(f"Unknown register kind '{kind}' (expected one of: {valid})")


def _format_validation_errors(kind: RegisterKind, exc: ValidationError) -> list[str]:
    problems = []
    for error in exc.errors():
        loc = error.get("loc", ())
        if not loc:
            where = f"{kind.value} document"
        else:
            index, *fields = loc
            where = f"{kind.value}[{index}]"
            if fields:
                where += "." + ".".join(str(f) for f in fields)
        problems.append(f"{where}: {error.get('msg')}")
    return problems


def _parse_document(document: Document, kind: RegisterKind) -> tuple[list[RegisterDefinition], list[str]]:
    """Parse one document, returning definitions and any problems found."""
    try:
        if isinstance(document, (str, bytes, bytearray)):
            entries = _entries_adapter.validate_json(document)
        else:
            entries = _entries_adapter.validate_python(document)
    except ValidationError as e:
        return [], _format_validation_errors(kind, e)

    definitions = []
    problems = []
    for index, entry in enumerate(entries):
        try:
            definitions.append(RegisterDefinition.from_entry(entry, kind))
        except ValidationError as e:
            problems.extend(
                f"{kind.value}[{index}]: {err.get('msg')}" for err in e.errors()
            )
    return definitions, problems


def _check_unique_names(definitions: list[RegisterDefinition]) -> list[str]:
    problems = []
    seen: dict[str, RegisterDefinition] = {}
    for definition in definitions:
        first = seen.get(definition.name)
        if first is not None:
            problems.append(
                f"duplicate name '{definition.name}' "
                f"({first.register_kind.value}@{first.address} and "
                f"{definition.register_kind.value}@{definition.address})"
            )
        else:
            seen[definition.name] = definition
    return problems


def _check_overlaps(definitions: list[RegisterDefinition]) -> list[str]:
    problems = []
    for kind in RegisterKind:
        ordered = sorted(
            (d for d in definitions if d.register_kind == kind),
            key=lambda d: (d.address, d.end_address),
        )
        # Track the definition reaching furthest so far; any later start before
        # its end overlaps it
        furthest: Optional[RegisterDefinition] = None
        for definition in ordered:
            if furthest is not None and furthest.overlaps(definition):
                problems.append(
                    f"{kind.value} registers '{furthest.name}' "
                    f"[{furthest.address}, {furthest.end_address}) and '{definition.name}' "
                    f"[{definition.address}, {definition.end_address}) overlap"
                )
            if furthest is None or definition.end_address > furthest.end_address:
                furthest = definition
    return problems


def load_document(document: Document, kind: Union[str, RegisterKind]) -> tuple[RegisterDefinition, ...]:
    """
    Parse and validate a single register document.

    Args:
        document: JSON text (str/bytes) or an already-decoded list of entries
        kind: Register kind every entry of the document belongs to

    Returns:
        Definitions ordered by address

    Raises:
        SchemaError: If the document is malformed or internally inconsistent
    """
    register_kind = parse_register_kind(kind)
    return load_schema({register_kind: document}).definitions


def load_schema(documents: Mapping[Union[str, RegisterKind], Document]) -> RegisterSchema:
    """
    Build a RegisterSchema from one document per register kind.

    Every document is parsed before any cross-document check runs, so the
    resulting SchemaError lists all problems at once.

    Args:
        documents: Mapping of register kind ('input'/'holding') to document

    Returns:
        Validated RegisterSchema

    Raises:
        SchemaError: On malformed documents, unknown tokens, duplicate names,
                     or overlapping address ranges within a register kind
    """
    definitions: list[RegisterDefinition] = []
    problems: list[str] = []
    seen_kinds: set[RegisterKind] = set()

    for raw_kind, document in documents.items():
        kind = parse_register_kind(raw_kind)
        if kind in seen_kinds:
            problems.append(f"more than one document given for {kind.value} registers")
            continue
        seen_kinds.add(kind)

        parsed, document_problems = _parse_document(document, kind)
        definitions.extend(parsed)
        problems.extend(document_problems)

    problems.extend(_check_unique_names(definitions))
    problems.extend(_check_overlaps(definitions))

    if problems:
        raise SchemaError("Invalid register schema", problems)

    kind_order = {kind: i for i, kind in enumerate(RegisterKind)}
    definitions.sort(key=lambda d: (kind_order[d.register_kind], d.address))

    logger.debug(
        f"Loaded register schema with {len(definitions)} definitions "
        f"({', '.join(k.value for k in sorted(seen_kinds, key=kind_order.get))})"
    )
    return RegisterSchema(definitions=tuple(definitions))


def load_schema_files(
    input_path: Optional[Union[str, Path]] = None,
    holding_path: Optional[Union[str, Path]] = None,
) -> RegisterSchema:
    """
    Load the input and holding register documents from disk.

    Either path may be omitted when the device exposes no registers of that
    kind, but at least one must be given.

    Raises:
        SchemaError: If no path is given, a file cannot be read, or the
                     combined schema is invalid
    """
    paths = {
        RegisterKind.INPUT: input_path,
        RegisterKind.HOLDING: holding_path,
    }
    paths = {kind: Path(p) for kind, p in paths.items() if p}
    if not paths:
        raise SchemaError("No register schema documents configured")

    documents: dict[RegisterKind, str] = {}
    problems: list[str] = []
    for kind, path in paths.items():
        try:
            documents[kind] = path.read_text(encoding="utf-8")
        except OSError as e:
            problems.append(f"cannot read {kind.value} register document {path}: {e.strerror or e}")
        except UnicodeDecodeError as e:
            problems.append(f"{kind.value} register document {path} is not valid UTF-8: {e.reason}")
    if problems:
        raise SchemaError("Invalid register schema", problems)

    schema = load_schema(documents)
    logger.info(
        f"Loaded {len(schema)} register definitions from "
        f"{', '.join(str(p) for p in paths.values())}"
    )
    return schema


def dump_document(schema: RegisterSchema, kind: Union[str, RegisterKind], indent: Optional[int] = 2) -> str:
    """
    Serialize the definitions of one register kind back to a schema document.

    The output loads back into an identical set of definitions.
    """
    register_kind = parse_register_kind(kind)
    entries = [
        definition.to_entry().model_dump(mode="json")
        for definition in schema.get_definitions_by_kind(register_kind)
    ]
    return json.dumps(entries, indent=indent)
