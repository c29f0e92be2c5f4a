"""Bytecode and hex helpers."""

import re

from web3 import Web3

from .constants import PLACEHOLDER_BYTECODE
from .exceptions import ValidationError

_HEX_QUANTITY_RE = re.compile(r"(0[xX])?[0-9a-fA-F]+")


def strip_hex_prefix(value: str) -> str:
    """Remove a leading ``0x``/``0X`` if present."""
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def hex_to_bytes(value: str) -> bytes:
    """
    Decode a hex string with or without prefix.

    Raises:
        ValueError: If the string is not valid hex
    """
    return bytes.fromhex(strip_hex_prefix(value))


def is_valid_bytecode(value: str) -> bool:
    """Check that bytecode is non-empty, not a placeholder and decodable."""
    if value in PLACEHOLDER_BYTECODE or not strip_hex_prefix(value):
        return False
    try:
        hex_to_bytes(value)
    except ValueError:
        return False
    return True


def compute_bytecode_hash(value: str) -> str:
    """
    Compute the keccak-256 content hash of initialization bytecode.

    Args:
        value: Hex bytecode, ``0x`` prefix optional

    Returns:
        64 lowercase hex characters without prefix, or "" for empty bytecode

    Raises:
        ValidationError: If the bytecode is not valid hex
    """
    try:
        raw = hex_to_bytes(value)
    except ValueError as e:
        raise ValidationError(f"Invalid bytecode hex: {e}") from e

    if not raw:
        return ""
    return Web3.keccak(raw).hex().removeprefix("0x")


def parse_hex_quantity(value: str) -> int:
    """
    Parse a JSON-RPC hex quantity (e.g., "0x5208" -> 21000).

    Raises:
        ValidationError: If the value is not a hex number
    """
    if not isinstance(value, str) or not _HEX_QUANTITY_RE.fullmatch(value):
        raise ValidationError(f"Invalid hex quantity: {value}")
    return int(strip_hex_prefix(value), 16)


def parse_hex_block_number(value: str) -> int:
    """
    Parse a hex block number (e.g., "0x1a4" -> 420).

    Raises:
        ValidationError: If the value is not a hex number
    """
    try:
        return parse_hex_quantity(value)
    except ValidationError as e:
        raise ValidationError(f"Invalid hex block number: {value}") from e
