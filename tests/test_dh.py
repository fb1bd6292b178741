import pytest

from groupdh.common.errors import InsufficientRandomness, InvalidDomainParameters
from groupdh.crypto.dh import (
    MODP_2048,
    OAKLEY_768,
    DomainParameters,
    compute_shared,
    derive_public_key,
    generate_key_pair,
    generate_private_key,
    modpow,
)


### domain parameters ###

def test_named_groups_have_expected_sizes():
    assert MODP_2048.bits == 2048
    assert OAKLEY_768.bits == 768
    assert MODP_2048.g == 2


@pytest.mark.parametrize("p, g", [(23, 1), (23, 23), (23, 0), (24, 5), (3, 2)])
def test_invalid_domain_parameters(p, g):
    with pytest.raises(InvalidDomainParameters):
        DomainParameters(p=p, g=g)


def test_invalid_domain_parameters_is_a_value_error():
    with pytest.raises(ValueError):
        DomainParameters(p=23, g=30)


def test_require_strength_rejects_small_modulus():
    with pytest.raises(InvalidDomainParameters):
        OAKLEY_768.require_strength(2048)
    assert MODP_2048.require_strength(2048) is MODP_2048
    assert OAKLEY_768.require_strength(768) is OAKLEY_768


### generate_private_key ###

def test_private_key_range_on_tiny_prime(seeded_source):
    p = 23
    seen = set()
    for _ in range(500):
        x = generate_private_key(32, p, seeded_source)
        assert 1 <= x < p - 1
        seen.add(x)
    # every value of [1, p-2] shows up over enough draws
    assert seen == set(range(1, p - 1))


def test_private_key_range_with_reduction(small_params, seeded_source):
    for _ in range(200):
        x = generate_private_key(32, small_params.p, seeded_source)
        assert 1 <= x < small_params.p - 1


def test_private_keys_are_pairwise_distinct():
    keys = [generate_private_key(32, MODP_2048.p) for _ in range(50)]
    assert len(set(keys)) == len(keys)


def test_private_key_clears_top_bit():
    x = generate_private_key(4, MODP_2048.p, lambda n: b"\xff" * n)
    assert x == 0x7FFFFFFF


def test_private_key_zero_is_redrawn():
    draws = iter([bytes([0, 22]), bytes([0, 5])])  # 22 % 22 == 0, then 5
    assert generate_private_key(2, 23, lambda n: next(draws)) == 5


def test_private_key_source_failure_is_fatal():
    def broken(n):
        raise OSError("no entropy")

    with pytest.raises(InsufficientRandomness):
        generate_private_key(32, MODP_2048.p, broken)


@pytest.mark.parametrize("exc", [RuntimeError("device gone"), ValueError("bad state"), KeyError(0)])
def test_any_source_exception_becomes_insufficient_randomness(exc):
    def broken(n):
        raise exc

    with pytest.raises(InsufficientRandomness):
        generate_private_key(32, MODP_2048.p, broken)


def test_private_key_short_source_output_is_fatal():
    with pytest.raises(InsufficientRandomness):
        generate_private_key(32, MODP_2048.p, lambda n: b"\x01" * (n - 1))


def test_private_key_argument_validation():
    with pytest.raises(ValueError):
        generate_private_key(0, MODP_2048.p)
    with pytest.raises(ValueError):
        generate_private_key(32, 3)


### derive_public_key ###

def test_derive_public_key_is_deterministic(modp2048):
    x = 0xC0FFEE
    y = derive_public_key(x, modp2048)
    assert y == derive_public_key(x, modp2048)
    assert y == pow(2, x, modp2048.p)


def test_generate_key_pair_hides_private_key(small_params, seeded_source):
    kp = generate_key_pair(small_params, 32, seeded_source)
    assert kp.public == modpow(small_params.g, kp.private, small_params.p)
    assert str(kp.private) not in repr(kp)


### compute_shared ###

def test_two_party_shared_secret(modp2048):
    a, b = 123456789, 987654321
    A = derive_public_key(a, modp2048)
    B = derive_public_key(b, modp2048)
    assert compute_shared(B, a, modp2048) == compute_shared(A, b, modp2048)


@pytest.mark.parametrize("peer", [0, 1])
def test_compute_shared_rejects_degenerate_peer_values(modp2048, peer):
    with pytest.raises(ValueError):
        compute_shared(peer, 5, modp2048)
    with pytest.raises(ValueError):
        compute_shared(modp2048.p - 1, 5, modp2048)
