"""
Register value decoding.

Converts raw 16-bit register words into scaled physical values.

Word order for 32-bit types is a schema-wide convention that cannot be
discovered from the device: "big" (default) puts the most significant word
first, "little" puts it last. Bytes inside a word are always big-endian, as
the Modbus protocol mandates.
"""

import struct
from typing import Iterable, List, Literal, Sequence, Tuple

from modbus_exporter.schemas.modbus_models import DataType, RegisterDefinition
from modbus_exporter.utils.exceptions import DecodeError, LengthMismatchError

WordOrder = Literal["big", "little"]

WORD_ORDERS = ("big", "little")


def _combine_words(register_values: Sequence[int], word_order: WordOrder) -> int:
    """Combine two 16-bit words into an unsigned 32-bit pattern."""
    if word_order == "big":
        return (register_values[0] << 16) | register_values[1]
    return (register_values[1] << 16) | register_values[0]


def _convert_int16(register_values: Sequence[int]) -> int:
    value = register_values[0]
    if value >= 0x8000:
        return value - 0x10000
    return value


def _convert_uint32(register_values: Sequence[int], word_order: WordOrder) -> int:
    return _combine_words(register_values, word_order)


def _convert_int32(register_values: Sequence[int], word_order: WordOrder) -> int:
    combined = _combine_words(register_values, word_order)
    if combined >= 0x80000000:
        return combined - 0x100000000
    return combined


def _convert_float32(register_values: Sequence[int], word_order: WordOrder) -> float:
    bytes_data = struct.pack(">I", _combine_words(register_values, word_order))
    return struct.unpack(">f", bytes_data)[0]


def _raw_value(data_type: DataType, words: Sequence[int], word_order: WordOrder) -> float:
    if data_type == DataType.UINT16:
        return float(words[0])
    if data_type == DataType.INT16:
        return float(_convert_int16(words))
    if data_type == DataType.UINT32:
        return float(_convert_uint32(words, word_order))
    if data_type == DataType.INT32:
        return float(_convert_int32(words, word_order))
    if data_type == DataType.FLOAT32:
        return _convert_float32(words, word_order)
    raise ValueError(f"Unsupported data_type: {data_type}")


def decode(
    raw_words: Sequence[int],
    definition: RegisterDefinition,
    word_order: WordOrder = "big",
) -> float:
    """
    Decode the raw words of one register into its scaled value.

    Args:
        raw_words: Exactly ``definition.span`` unsigned 16-bit words
        definition: Register definition giving type and scale
        word_order: Schema-wide word order for 32-bit types ("big" or "little")

    Returns:
        Raw value reinterpreted per data type, multiplied by the scale

    Raises:
        LengthMismatchError: If the word count does not match the type span
        DecodeError: If a word is not an unsigned 16-bit integer

    Example:
        >>> temp = RegisterDefinition(name="temp", address=0, register_kind="input", data_type="float32")
        >>> decode([0x4120, 0x0000], temp)
        10.0
    """
    if word_order not in WORD_ORDERS:
        raise ValueError(f"word_order must be 'big' or 'little', got '{word_order}'")

    if len(raw_words) != definition.span:
        raise LengthMismatchError(definition.name, definition.span, len(raw_words))

    words = []
    for word in raw_words:
        if isinstance(word, bool) or not isinstance(word, int) or not 0 <= word <= 0xFFFF:
            raise DecodeError(definition.name, f"register word {word!r} is not an unsigned 16-bit integer")
        words.append(word)

    return _raw_value(definition.data_type, words, word_order) * definition.scale


def decode_range(
    words: Sequence[int],
    start_address: int,
    definitions: Iterable[RegisterDefinition],
    word_order: WordOrder = "big",
) -> Tuple[List[Tuple[RegisterDefinition, float]], List[DecodeError]]:
    """
    Decode every definition contained in one block read.

    A definition whose words fall outside the block, or that fails to decode,
    is reported as a DecodeError and left out; the others are unaffected.

    Args:
        words: Words returned by a single read starting at ``start_address``
        start_address: Address of ``words[0]``
        definitions: Definitions located inside the block
        word_order: Schema-wide word order for 32-bit types

    Returns:
        Tuple of (decoded (definition, value) pairs in input order, errors)
    """
    decoded: List[Tuple[RegisterDefinition, float]] = []
    errors: List[DecodeError] = []

    for definition in definitions:
        offset = definition.address - start_address
        if offset < 0:
            errors.append(DecodeError(
                definition.name,
                f"address {definition.address} is before block start {start_address}",
            ))
            continue
        point_words = words[offset:offset + definition.span]
        try:
            decoded.append((definition, decode(point_words, definition, word_order)))
        except DecodeError as e:
            errors.append(e)

    return decoded, errors
