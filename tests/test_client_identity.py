"""Tests for client address normalisation and identity keys."""

import pytest

from six_cities.core.client_identity import (
    UNKNOWN_ADDRESS,
    address_identity,
    normalize_address,
    principal_identity,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.2.3.4", "1.2.3.4"),
        (" 1.2.3.4 ", "1.2.3.4"),
        ("::ffff:1.2.3.4", "1.2.3.4"),
        ("::FFFF:0102:0304", "1.2.3.4"),
        ("2001:db8:abcd:12ff::1", "2001:db8:abcd:1200::/56"),
        ("2001:DB8:ABCD:1200:0:0:0:9", "2001:db8:abcd:1200::/56"),
        ("[2001:db8::1]", "2001:db8::/56"),
        ("fe80::1%eth0", "fe80::/56"),
    ],
)
def test_normalize_address(raw: str, expected: str) -> None:
    assert normalize_address(raw) == expected


def test_normalize_address_respects_subnet() -> None:
    assert normalize_address("2001:db8:abcd:12ff::1", ipv6_subnet=64) == "2001:db8:abcd:12ff::/64"
    assert normalize_address("2001:db8::1", ipv6_subnet=128) == "2001:db8::1/128"


@pytest.mark.parametrize("raw", [None, ""])
def test_missing_address_is_unknown(raw) -> None:
    assert normalize_address(raw) == UNKNOWN_ADDRESS


def test_unparsable_address_is_kept() -> None:
    assert normalize_address("testclient") == "testclient"


def test_identity_keys() -> None:
    assert address_identity("::ffff:10.0.0.1").key == "ip:10.0.0.1"
    assert principal_identity("abc").key == "user:abc"


def test_key_hash_is_stable_and_does_not_expose_key() -> None:
    identity = address_identity("10.0.0.1")

    assert identity.key_hash == address_identity("10.0.0.1").key_hash
    assert len(identity.key_hash) == 16
    assert "10.0.0.1" not in identity.key_hash
