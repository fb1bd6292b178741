import pytest

from groupdh.common.errors import InvalidDomainParameters
from groupdh.crypto.dh import OAKLEY_768
from groupdh.crypto.kdf import derive_symmetric_key
from groupdh.three_party import ThreePartyExchange, three_party_communication_cost
from groupdh.tree import TreeGroupKeyExchange, naive_pairwise_cost, tree_communication_cost


def test_three_party_agreement(modp2048, seeded_source):
    result = ThreePartyExchange(modp2048, random_source=seeded_source, min_modulus_bits=2048, key_bytes=32).run()
    assert len(set(result.final_keys)) == 1
    assert result.keys_match
    assert result.communication_count == 4 == three_party_communication_cost()
    assert result.symmetric_key == derive_symmetric_key(result.final_key)


@pytest.mark.parametrize("x, y, z", [(1, 1, 1), (5, 7, 11), (123, 456, 789), (2**100, 3, 2**90 + 1)])
def test_three_party_formula(small_params, x, y, z):
    result = ThreePartyExchange(small_params, min_modulus_bits=127, key_bytes=32).run([x, y, z])
    p, g = small_params.p, small_params.g

    assert result.pairwise_key == pow(g, x * y, p)
    assert result.final_key == (pow(g, z, p) * pow(g, x * y, p)) % p
    assert set(result.final_keys) == {result.final_key}


def test_three_party_cost_sits_between_naive_and_tree():
    # four messages: more than three pairwise exchanges, fewer than 2N-1
    assert naive_pairwise_cost(3) < three_party_communication_cost() < tree_communication_cost(3)


def test_three_party_and_tree_agree_internally(small_params):
    keys = [321, 654, 987]
    tree = TreeGroupKeyExchange(small_params, 3, min_modulus_bits=127, key_bytes=32).run(keys)
    three = ThreePartyExchange(small_params, min_modulus_bits=127, key_bytes=32).run(keys)

    # both are internally consistent; their secrets use different exponents
    assert len(set(tree.final_keys)) == 1
    assert len(set(three.final_keys)) == 1
    assert tree.final_key == pow(small_params.g, keys[0] * (keys[1] + keys[2]), small_params.p)
    assert three.final_key != tree.final_key


def test_three_party_rejects_wrong_key_count(small_params):
    with pytest.raises(ValueError):
        ThreePartyExchange(small_params, min_modulus_bits=127, key_bytes=32).run([1, 2])


def test_three_party_enforces_minimum_modulus():
    with pytest.raises(InvalidDomainParameters):
        ThreePartyExchange(OAKLEY_768, min_modulus_bits=2048)


def test_three_party_accepts_public_key_p_minus_1(small_params):
    # 3 is a non-residue mod 2^127-1, so 3^((p-1)/2) == p-1
    p, g = small_params.p, small_params.g
    x, y, z = (p - 1) // 2, 5, 7
    result = ThreePartyExchange(small_params, min_modulus_bits=127, key_bytes=32).run([x, y, z])

    assert result.public_keys[0] == p - 1
    assert result.pairwise_key == pow(g, x * y, p)
    assert set(result.final_keys) == {(pow(g, z, p) * pow(g, x * y, p)) % p}


def test_three_and_tree_accept_the_same_keys(small_params):
    keys = [(small_params.p - 1) // 2, 5, 7]
    tree = TreeGroupKeyExchange(small_params, 3, min_modulus_bits=127, key_bytes=32).run(keys)
    three = ThreePartyExchange(small_params, min_modulus_bits=127, key_bytes=32).run(keys)
    assert tree.keys_match and three.keys_match
