"""ABI parsing, function classification and value conversion.

Values cross the boundary in a generic JSON-like form: addresses and byte
strings as ``0x`` hex strings, integers as native ints or decimal strings,
booleans and strings as-is, arrays as lists. Packing into the contract
calling convention is delegated to ``eth_abi``.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError
from web3 import Web3

from .bytecode import hex_to_bytes, strip_hex_prefix
from .exceptions import (
    AbiDecodeError,
    AbiEncodeError,
    AbiParseError,
    FunctionNotFoundError,
    ValidationError,
)

ABI_ITEM_TYPES = {"function", "constructor", "event", "error", "fallback", "receive"}

_INT_ALIAS_RE = re.compile(r"^(u?int)(?=\[|$)")
_INT_RE = re.compile(r"(u?)int([0-9]+)")
_FIXED_BYTES_RE = re.compile(r"bytes([0-9]+)")
_ADDRESS_RE = re.compile(r"(0[xX])?[0-9a-fA-F]{40}")
_DECIMAL_RE = re.compile(r"-?[0-9]+")
_HEX_INT_RE = re.compile(r"-?0[xX][0-9a-fA-F]+")


class StateMutability(Enum):
    """
    Function mutability.

    Value strings match the ``stateMutability`` field of a JSON ABI.
    """

    PURE = "pure"
    VIEW = "view"
    NONPAYABLE = "nonpayable"
    PAYABLE = "payable"

    @property
    def is_read_only(self) -> bool:
        return self in (StateMutability.PURE, StateMutability.VIEW)

    @property
    def is_payable(self) -> bool:
        return self is StateMutability.PAYABLE


@dataclass(frozen=True)
class ParamInfo:
    """A function or constructor parameter."""

    name: str
    type: str
    components: Optional[List["ParamInfo"]] = None

    @classmethod
    def from_abi(cls, param: Dict[str, Any]) -> "ParamInfo":
        components = param.get("components")
        return cls(
            name=param.get("name") or "",
            type=param["type"],
            components=[cls.from_abi(c) for c in components] if components else None,
        )

    def canonical_type(self) -> str:
        """Type as it appears in a signature, tuples expanded."""
        if self.type.startswith("tuple"):
            suffix = self.type[len("tuple"):]
            inner = ",".join(c.canonical_type() for c in self.components or [])
            return f"({inner}){suffix}"
        return normalize_type(self.type)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.components is not None:
            result["components"] = [c.to_dict() for c in self.components]
        return result


@dataclass(frozen=True)
class FunctionInfo:
    """A single declared function (one entry per overload)."""

    name: str
    signature: str
    inputs: List[ParamInfo]
    outputs: List[ParamInfo]
    state_mutability: StateMutability

    @classmethod
    def from_abi(cls, item: Dict[str, Any]) -> "FunctionInfo":
        inputs = [ParamInfo.from_abi(p) for p in item.get("inputs", [])]
        signature = f"{item['name']}({','.join(p.canonical_type() for p in inputs)})"
        return cls(
            name=item["name"],
            signature=signature,
            inputs=inputs,
            outputs=[ParamInfo.from_abi(p) for p in item.get("outputs", [])],
            state_mutability=_state_mutability(item),
        )

    @property
    def is_read_only(self) -> bool:
        return self.state_mutability.is_read_only

    @property
    def is_payable(self) -> bool:
        return self.state_mutability.is_payable

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "signature": self.signature,
            "inputs": [p.to_dict() for p in self.inputs],
            "outputs": [p.to_dict() for p in self.outputs],
            "state_mutability": self.state_mutability.value,
        }


@dataclass(frozen=True)
class ConstructorInfo:
    """Constructor parameters and mutability."""

    inputs: List[ParamInfo]
    state_mutability: StateMutability

    @property
    def is_payable(self) -> bool:
        return self.state_mutability.is_payable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputs": [p.to_dict() for p in self.inputs],
            "state_mutability": self.state_mutability.value,
        }


@dataclass(frozen=True)
class ParsedFunctions:
    """Functions split into read (pure/view) and write (nonpayable/payable)."""

    read: List[FunctionInfo]
    write: List[FunctionInfo]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "read": [f.to_dict() for f in self.read],
            "write": [f.to_dict() for f in self.write],
        }


class Abi:
    """Validated contract interface description."""

    def __init__(self, items: List[Dict[str, Any]]):
        _validate_abi(items)
        self._items = items
        self._functions = [
            FunctionInfo.from_abi(item)
            for item in items
            if item.get("type", "function") == "function"
        ]

    @classmethod
    def parse(cls, abi_json: str) -> "Abi":
        """
        Parse a JSON ABI string.

        Raises:
            AbiParseError: If the text is not JSON or not a valid ABI
        """
        try:
            value = json.loads(abi_json)
        except (TypeError, json.JSONDecodeError) as e:
            raise AbiParseError(f"Failed to parse ABI: {e}") from e
        return cls(value)

    @classmethod
    def from_value(cls, value: Any) -> "Abi":
        """Build from an already deserialized ABI list."""
        return cls(value)

    @property
    def items(self) -> List[Dict[str, Any]]:
        return self._items

    def to_json(self) -> str:
        return json.dumps(self._items)

    def constructor(self) -> Optional[ConstructorInfo]:
        for item in self._items:
            if item.get("type") == "constructor":
                return ConstructorInfo(
                    inputs=[ParamInfo.from_abi(p) for p in item.get("inputs", [])],
                    state_mutability=_state_mutability(item),
                )
        return None

    def has_constructor_with_args(self) -> bool:
        constructor = self.constructor()
        return constructor is not None and len(constructor.inputs) > 0

    def functions(self) -> ParsedFunctions:
        read = [f for f in self._functions if f.is_read_only]
        write = [f for f in self._functions if not f.is_read_only]
        # Stable sort keeps overloads in declaration order
        read.sort(key=lambda f: f.name)
        write.sort(key=lambda f: f.name)
        return ParsedFunctions(read=read, write=write)

    def function(self, name: str) -> Optional[FunctionInfo]:
        """
        Get a function by name.

        Only the first-declared overload is returned when several share the
        name; use function_by_signature() or resolve_function() to pick one.
        """
        overloads = self.function_overloads(name)
        return overloads[0] if overloads else None

    def function_overloads(self, name: str) -> List[FunctionInfo]:
        return [f for f in self._functions if f.name == name]

    def function_by_signature(self, signature: str) -> Optional[FunctionInfo]:
        wanted = signature.replace(" ", "")
        for f in self._functions:
            if f.signature == wanted:
                return f
        return None

    def resolve_function(self, reference: str, contract: str = "unknown") -> FunctionInfo:
        """
        Resolve a function by full signature or by unambiguous name.

        Args:
            reference: "transfer" or "transfer(address,uint256)"
            contract: Contract name used in error messages

        Raises:
            FunctionNotFoundError: If nothing matches
            ValidationError: If a bare name matches several overloads
        """
        if "(" in reference:
            function = self.function_by_signature(reference)
            if function is None:
                raise FunctionNotFoundError(contract, reference)
            return function

        overloads = self.function_overloads(reference)
        if not overloads:
            raise FunctionNotFoundError(contract, reference)
        if len(overloads) > 1:
            candidates = ", ".join(f.signature for f in overloads)
            raise ValidationError(
                f"Function '{reference}' is overloaded; use one of: {candidates}"
            )
        return overloads[0]


# Encoding / decoding


def normalize_type(type_str: str) -> str:
    """Expand the ``uint``/``int`` aliases to their 256-bit forms."""
    return _INT_ALIAS_RE.sub(r"\g<1>256", type_str.strip())


def to_abi_value(type_str: str, value: Any) -> Any:
    """
    Convert a generic value into the Python value eth_abi packs for a type.

    Args:
        type_str: Declared parameter type (e.g., "uint256", "address[]")
        value: Generic JSON-like value

    Returns:
        Value ready for eth_abi.encode

    Raises:
        AbiEncodeError: If the value does not fit the type, or the type is
            not supported as a call argument (tuples, fixed-size arrays)
    """
    type_str = normalize_type(type_str)

    if type_str.endswith("[]"):
        if not isinstance(value, list):
            raise AbiEncodeError("Expected array")
        inner = type_str[:-2]
        return [to_abi_value(inner, v) for v in value]

    if type_str == "address":
        if not isinstance(value, str):
            raise AbiEncodeError("Expected string for address")
        if not _ADDRESS_RE.fullmatch(value):
            raise AbiEncodeError(f"Invalid address '{value}'")
        return Web3.to_checksum_address("0x" + strip_hex_prefix(value).lower())

    if type_str == "bool":
        if not isinstance(value, bool):
            raise AbiEncodeError("Expected boolean")
        return value

    int_match = _INT_RE.fullmatch(type_str)
    if int_match:
        signed = int_match.group(1) != "u"
        bits = int(int_match.group(2))
        if bits % 8 or not 8 <= bits <= 256:
            raise AbiEncodeError(f"Unsupported type: {type_str}")
        return _parse_integer(value, signed, bits)

    if type_str == "bytes":
        return _parse_hex_bytes(value, "Expected hex string for bytes")

    bytes_match = _FIXED_BYTES_RE.fullmatch(type_str)
    if bytes_match:
        size = int(bytes_match.group(1))
        if not 1 <= size <= 32:
            raise AbiEncodeError(f"Unsupported type: {type_str}")
        raw = _parse_hex_bytes(value, "Expected hex string")
        if len(raw) != size:
            raise AbiEncodeError(f"Expected {size} bytes, got {len(raw)}")
        return raw

    if type_str == "string":
        if not isinstance(value, str):
            raise AbiEncodeError("Expected string")
        return value

    raise AbiEncodeError(f"Unsupported type: {type_str}")


def from_abi_value(
    type_str: str, value: Any, components: Optional[List[ParamInfo]] = None
) -> Any:
    """
    Convert a value unpacked by eth_abi back into the generic form.

    Integers become decimal strings so no precision is lost in JSON.
    """
    type_str = normalize_type(type_str)

    if type_str.endswith("]"):
        inner = type_str[: type_str.rindex("[")]
        return [from_abi_value(inner, v, components) for v in value]

    if type_str == "tuple":
        return [
            from_abi_value(c.type, v, c.components)
            for c, v in zip(components or [], value)
        ]

    if type_str == "address":
        return Web3.to_checksum_address(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def encode_function_call(function: FunctionInfo, args: Sequence[Any]) -> bytes:
    """
    Encode selector plus arguments for a function call.

    Raises:
        ValidationError: If the argument count does not match
        AbiEncodeError: If an argument cannot be converted or packed
    """
    values = _convert_args(function.inputs, args)
    return function.selector + _pack(function.inputs, values)


def encode_constructor_args(
    constructor: Optional[ConstructorInfo], args: Sequence[Any]
) -> bytes:
    """
    Encode constructor arguments (appended to init bytecode on deploy).

    A missing constructor or one without inputs encodes to empty bytes.
    """
    inputs = constructor.inputs if constructor is not None else []
    if not inputs:
        if args:
            raise ValidationError("Constructor takes no arguments")
        return b""
    values = _convert_args(inputs, args)
    return _pack(inputs, values)


def decode_function_result(function: FunctionInfo, data: bytes) -> Any:
    """
    Decode the return data of a call.

    Returns:
        None when the function declares no outputs, the bare value for a
        single output, otherwise a list in declaration order

    Raises:
        AbiDecodeError: If the data does not match the declared outputs
    """
    if not function.outputs:
        return None

    types = [p.canonical_type() for p in function.outputs]
    try:
        decoded = abi_decode(types, data)
    except (DecodingError, ValueError, TypeError) as e:
        raise AbiDecodeError(f"Failed to decode result: {e}") from e

    result = [
        from_abi_value(p.type, v, p.components) for p, v in zip(function.outputs, decoded)
    ]
    if len(result) == 1:
        return result[0]
    return result


def _convert_args(params: List[ParamInfo], args: Sequence[Any]) -> List[Any]:
    if len(args) != len(params):
        raise ValidationError(f"Expected {len(params)} parameters, got {len(args)}")

    values = []
    for i, (param, value) in enumerate(zip(params, args)):
        try:
            values.append(to_abi_value(param.type, value))
        except AbiEncodeError as e:
            raise AbiEncodeError(f"Parameter {i}: {e}") from e
    return values


def _pack(params: List[ParamInfo], values: List[Any]) -> bytes:
    types = [p.canonical_type() for p in params]
    try:
        return abi_encode(types, values)
    except (EncodingError, ValueError, TypeError) as e:
        raise AbiEncodeError(f"Failed to encode arguments: {e}") from e


def _parse_integer(value: Any, signed: bool, bits: int) -> int:
    kind = "int" if signed else "uint"

    # bool is an int subclass; JSON true is not a number
    if isinstance(value, bool):
        raise AbiEncodeError(f"Expected number or string for {kind}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        # int() alone would also take "1_000" and non-ASCII digits
        if _HEX_INT_RE.fullmatch(text):
            number = int(text, 16)
        elif _DECIMAL_RE.fullmatch(text):
            number = int(text, 10)
        else:
            raise AbiEncodeError(f"Invalid {kind}: {value!r}")
    else:
        raise AbiEncodeError(f"Expected number or string for {kind}")

    if signed:
        low, high = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    else:
        if number < 0:
            raise AbiEncodeError("Negative number not allowed for uint")
        low, high = 0, 2**bits - 1
    if not low <= number <= high:
        raise AbiEncodeError(f"Value {number} out of range for {kind}{bits}")
    return number


def _parse_hex_bytes(value: Any, message: str) -> bytes:
    if not isinstance(value, str):
        raise AbiEncodeError(message)
    try:
        return hex_to_bytes(value)
    except ValueError as e:
        raise AbiEncodeError(f"Invalid hex: {e}") from e


def _state_mutability(item: Dict[str, Any]) -> StateMutability:
    value = item.get("stateMutability")
    if value is not None:
        return StateMutability(value)
    # Pre-0.5 compilers only emit the constant/payable flags
    if item.get("constant"):
        return StateMutability.VIEW
    if item.get("payable"):
        return StateMutability.PAYABLE
    return StateMutability.NONPAYABLE


def _validate_abi(items: Any) -> None:
    if not isinstance(items, list):
        raise AbiParseError("Failed to parse ABI: expected a JSON array")

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise AbiParseError(f"Failed to parse ABI: entry {index} is not an object")

        kind = item.get("type", "function")
        if kind not in ABI_ITEM_TYPES:
            raise AbiParseError(f"Failed to parse ABI: unknown entry type '{kind}'")
        if kind in ("function", "event", "error") and not isinstance(item.get("name"), str):
            raise AbiParseError(f"Failed to parse ABI: {kind} entry {index} has no name")

        mutability = item.get("stateMutability")
        if mutability is not None and mutability not in {m.value for m in StateMutability}:
            raise AbiParseError(f"Failed to parse ABI: invalid stateMutability '{mutability}'")

        for key in ("inputs", "outputs"):
            params = item.get(key, [])
            if not isinstance(params, list):
                raise AbiParseError(f"Failed to parse ABI: '{key}' of entry {index} is not a list")
            for param in params:
                _validate_param(param)


def _validate_param(param: Any) -> None:
    if not isinstance(param, dict) or not isinstance(param.get("type"), str):
        raise AbiParseError("Failed to parse ABI: parameter without a type")
    name = param.get("name")
    if name is not None and not isinstance(name, str):
        raise AbiParseError("Failed to parse ABI: parameter name must be a string")

    components = param.get("components")
    if param["type"].startswith("tuple"):
        if not isinstance(components, list):
            raise AbiParseError(
                f"Failed to parse ABI: tuple parameter '{name or ''}' has no components"
            )
    elif components is not None and not isinstance(components, list):
        raise AbiParseError("Failed to parse ABI: components must be a list")

    for component in components or []:
        _validate_param(component)
