"""
Rent price handling.

Registrar controllers disagree on what ``rentPrice`` returns: older ones give
a plain ``uint256``, ENS-style ones a ``(base, premium)`` struct. The raw
return data is decoded by its length so either deployment works, and the
resulting quote is reduced to a single payment amount.
"""

from eth_abi import decode

WORD = 32


def decode_rent_price(raw):
    """Decode raw ``rentPrice`` return data into ``int`` or ``(base, premium)``.

    Returns None when the data has neither shape.
    """
    raw = bytes(raw or b"")
    if len(raw) >= 2 * WORD:
        base, premium = decode(["uint256", "uint256"], raw[:2 * WORD])
        return base, premium
    if len(raw) == WORD:
        (price,) = decode(["uint256"], raw)
        return price
    return None


def resolve_price(quote, fallback):
    """Two-part quote -> base + premium, scalar -> itself, anything else -> fallback."""
    if isinstance(quote, bool):
        return fallback
    if isinstance(quote, int):
        return quote
    if isinstance(quote, (tuple, list)) and len(quote) >= 2:
        base, premium = quote[0], quote[1]
        if isinstance(base, int) and isinstance(premium, int):
            return base + premium
    return fallback
