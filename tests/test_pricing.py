from eth_abi import encode

from pharos_names.pricing import decode_rent_price, resolve_price


def test_two_part_quote_is_summed():
    assert resolve_price((100, 50), fallback=7) == 150


def test_scalar_quote_is_used_directly():
    assert resolve_price(200, fallback=7) == 200


def test_missing_quote_uses_fallback():
    assert resolve_price(None, fallback=7) == 7


def test_malformed_quotes_use_fallback():
    assert resolve_price((1,), fallback=7) == 7
    assert resolve_price(("a", "b"), fallback=7) == 7
    assert resolve_price(True, fallback=7) == 7


def test_decode_scalar_return_data():
    assert decode_rent_price(encode(["uint256"], [200])) == 200


def test_decode_struct_return_data():
    assert decode_rent_price(encode(["uint256", "uint256"], [100, 50])) == (100, 50)


def test_decode_garbage_returns_none():
    assert decode_rent_price(b"") is None
    assert decode_rent_price(None) is None
    assert decode_rent_price(b"\x01" * 10) is None


def test_decoded_struct_resolves_to_sum():
    quote = decode_rent_price(encode(["uint256", "uint256"], [10 ** 15, 5 * 10 ** 14]))
    assert resolve_price(quote, fallback=0) == 15 * 10 ** 14
