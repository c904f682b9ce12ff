#!/usr/bin/env python3
"""
Deterministic Derivation Utilities
Offline computation of CREATE2 addresses, coupon ids and wrapper metadata
"""

from typing import Tuple, Union

from hexbytes import HexBytes
from web3 import Web3

from .errors import InvalidArgumentError

BytesLike = Union[bytes, bytearray, str]

EPOCH_BITS = 96
ADDRESS_BITS = 160
ADDRESS_MASK = (1 << ADDRESS_BITS) - 1

# Solidity stores strings up to 31 bytes inline with the length in the last byte
SHORT_STRING_MAX = 31

MAX_FEE_RATE = 500000
MIN_FEE_RATE = -500000
FEE_USES_QUOTE_FLAG = 1 << 23


def to_bytes(value: BytesLike) -> bytes:
    """Accepts raw bytes or a 0x-prefixed hex string"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return bytes(HexBytes(value))
        except ValueError as e:
            raise InvalidArgumentError(f"Not a hex string: {value!r}") from e
    raise InvalidArgumentError(f"Expected bytes or hex string, got {type(value).__name__}")


def address_to_bytes(address: BytesLike) -> bytes:
    raw = to_bytes(address)
    if len(raw) != 20:
        raise InvalidArgumentError(f"Address must be 20 bytes, got {len(raw)}: {address!r}")
    return raw


def compute_create2_address(factory: BytesLike, init_code: BytesLike, salt: BytesLike = b"") -> str:
    """
    Compute the address a CREATE2 factory will deploy init_code to

    Args:
        factory: Address of the deploying factory
        init_code: Creation bytecode with the encoded constructor arguments appended
        salt: Up to 32 bytes, left padded with zeros

    Returns:
        Checksummed contract address
    """
    factory_bytes = address_to_bytes(factory)
    code = to_bytes(init_code)
    if not code:
        raise InvalidArgumentError("init_code must not be empty")
    salt_bytes = to_bytes(salt)
    if len(salt_bytes) > 32:
        raise InvalidArgumentError(f"Salt must be at most 32 bytes, got {len(salt_bytes)}")
    salt_bytes = salt_bytes.rjust(32, b"\x00")

    digest = Web3.keccak(b"\xff" + factory_bytes + salt_bytes + Web3.keccak(code))
    return Web3.to_checksum_address(digest[12:])


def derive_coupon_id(token: BytesLike, epoch: int) -> int:
    """Pack (epoch, token) into the ERC-1155 id used by the coupon manager"""
    if isinstance(epoch, bool) or not isinstance(epoch, int):
        raise InvalidArgumentError(f"Epoch must be an integer, got {epoch!r}")
    if not 0 <= epoch < (1 << EPOCH_BITS):
        raise InvalidArgumentError(f"Epoch {epoch} does not fit in {EPOCH_BITS} bits")
    token_int = int.from_bytes(address_to_bytes(token), 'big')
    return (epoch << ADDRESS_BITS) | token_int


def split_coupon_id(coupon_id: int) -> Tuple[str, int]:
    """Inverse of derive_coupon_id: returns (checksummed token, epoch)"""
    if coupon_id < 0 or coupon_id >> 256:
        raise InvalidArgumentError(f"Coupon id {coupon_id} is not a uint256")
    token = Web3.to_checksum_address((coupon_id & ADDRESS_MASK).to_bytes(20, 'big'))
    return token, coupon_id >> ADDRESS_BITS


def encode_short_string(text: str) -> bytes:
    """
    Encode text as one 32-byte Solidity short-string storage word

    The UTF-8 content is left aligned and zero padded to 31 bytes; the last
    byte holds twice the content length.
    """
    data = text.encode('utf-8')
    if len(data) > SHORT_STRING_MAX:
        raise InvalidArgumentError(
            f"{text!r} is {len(data)} bytes, at most {SHORT_STRING_MAX} fit in one word")
    return data.ljust(SHORT_STRING_MAX, b"\x00") + bytes([len(data) * 2])


def coupon_name(token_symbol: str, epoch: int) -> str:
    return f"{token_symbol} Bond Coupon ({epoch})"


def coupon_symbol(token_symbol: str, epoch: int) -> str:
    return f"{token_symbol}-CP{epoch}"


def build_wrapper_metadata(token_symbol: str, epoch: int, decimals: int) -> bytes:
    """
    Build the metadata blob the Wrapped1155 factory keys its wrappers on

    Args:
        token_symbol: ERC-20 symbol of the underlying asset
        epoch: Coupon epoch
        decimals: Decimals of the underlying asset

    Returns:
        65 bytes: name word, symbol word, one decimals byte
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= 255:
        raise InvalidArgumentError(f"Decimals must fit in one byte, got {decimals!r}")
    return (
        encode_short_string(coupon_name(token_symbol, epoch))
        + encode_short_string(coupon_symbol(token_symbol, epoch))
        + bytes([decimals])
    )


def encode_fee_policy(uses_quote: bool, rate: int) -> int:
    """
    Pack an order book fee policy into its uint24 form

    Args:
        uses_quote: Whether the fee is charged in the quote token
        rate: Signed fee rate in millionths, negative for maker rebates
    """
    if not MIN_FEE_RATE <= rate <= MAX_FEE_RATE:
        raise InvalidArgumentError(f"Fee rate {rate} outside [{MIN_FEE_RATE}, {MAX_FEE_RATE}]")
    mask = FEE_USES_QUOTE_FLAG if uses_quote else 0
    return mask | (rate + MAX_FEE_RATE)


def book_unit_size(decimals: int) -> int:
    """Order book unit size for a token with the given decimals"""
    if decimals < 9:
        return 1
    return 10 ** (decimals - 6)
