"""
Utility functions for addresses, chain ids and token amounts.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Optional, Union
from eth_utils import to_checksum_address, is_address, to_wei, from_wei

# eth-utils denomination names keyed by decimal places
DENOMINATIONS: Dict[int, str] = {
    0: "wei",
    3: "kwei",
    6: "mwei",
    9: "gwei",
    12: "szabo",
    15: "finney",
    18: "ether",
}


def validate_address(address: str) -> bool:
    """Validate EVM address format"""
    return isinstance(address, str) and is_address(address)


def normalize_address(address: str) -> str:
    """Normalize address to checksum format"""
    return to_checksum_address(address)


def addresses_equal(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two addresses case-insensitively"""
    if left is None or right is None:
        return False
    return left.lower() == right.lower()


def format_address(address: Optional[str]) -> str:
    """Shorten an address for display, e.g. 0x1234...abcd"""
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"


def to_hex_chain_id(chain_id: int) -> str:
    return hex(chain_id)


def from_hex_chain_id(chain_id: Union[str, int]) -> int:
    """Parse a chain id reported by a wallet (hex string or int)"""
    if isinstance(chain_id, int):
        return chain_id
    return int(chain_id, 16) if chain_id.lower().startswith("0x") else int(chain_id)


def _to_decimal(amount: Union[str, int]) -> Decimal:
    if isinstance(amount, bool) or not isinstance(amount, (str, int)):
        raise TypeError(f"Amount must be a str or int, got {type(amount).__name__}")
    try:
        value = Decimal(amount.strip() if isinstance(amount, str) else amount)
    except InvalidOperation:
        raise ValueError(f"Invalid token amount: {amount!r}") from None
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid token amount: {amount!r}")
    return value


def parse_units(amount: Union[str, int], decimals: int = 18) -> int:
    """
    Convert a human-readable token amount to base units.

    Named denominations go through eth-utils ``to_wei``; other decimals
    are scaled exactly with ``Decimal``. Floats are refused so that no
    binary rounding reaches the chain: ``parse_units("10", 18) == 10 * 10 ** 18``.
    """
    value = _to_decimal(amount)
    if value != 0 and value.normalize().as_tuple().exponent < -decimals:
        raise ValueError(f"Amount {amount!r} has more than {decimals} decimal places")
    unit = DENOMINATIONS.get(decimals)
    if unit is not None:
        return to_wei(value, unit)
    with localcontext() as ctx:
        ctx.prec = 999
        return int(value.scaleb(decimals))


def format_units(value: int, decimals: int = 18) -> str:
    """Convert base units to a human-readable decimal string"""
    if value < 0:
        raise ValueError("Value must not be negative")
    unit = DENOMINATIONS.get(decimals)
    with localcontext() as ctx:
        ctx.prec = 999
        if unit is not None:
            amount = Decimal(str(from_wei(int(value), unit)))
        else:
            amount = Decimal(int(value)).scaleb(-decimals)
        return format(amount.normalize(), "f")
