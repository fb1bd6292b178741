import pytest

from groupdh.actors import run_threaded
from groupdh.common.errors import InsufficientParties, ParticipantTimeout
from groupdh.tree import TreeGroupKeyExchange

SMALL_BITS = 127


@pytest.mark.parametrize("n", [3, 4, 5, 8])
def test_threaded_agreement(small_params, n):
    result = run_threaded(small_params, n, timeout=10.0, min_modulus_bits=SMALL_BITS, key_bytes=32)
    assert len(set(result.final_keys)) == 1
    assert result.communication_count == 2 * n - 1
    for j, received in result.distribution.items():
        assert j not in received


def test_threaded_matches_sequential_engine(small_params):
    keys = [123, 456, 789, 987, 654]
    threaded = run_threaded(small_params, 5, timeout=10.0, private_keys=keys, min_modulus_bits=SMALL_BITS, key_bytes=32)
    sequential = TreeGroupKeyExchange(small_params, 5, min_modulus_bits=SMALL_BITS, key_bytes=32).run(keys)

    assert threaded.final_keys == sequential.final_keys
    assert threaded.symmetric_key == sequential.symmetric_key
    assert threaded.intermediates == sequential.intermediates


def test_withheld_bundle_times_out(small_params):
    with pytest.raises(ParticipantTimeout) as excinfo:
        run_threaded(
            small_params, 4, timeout=0.3, min_modulus_bits=SMALL_BITS, key_bytes=32,
            drop_bundles_to={2},
        )
    assert excinfo.value.index == 2


def test_new_run_succeeds_after_timeout(small_params):
    with pytest.raises(ParticipantTimeout):
        run_threaded(
            small_params, 3, timeout=0.2, min_modulus_bits=SMALL_BITS, key_bytes=32,
            drop_bundles_to={1},
        )
    result = run_threaded(small_params, 3, timeout=10.0, min_modulus_bits=SMALL_BITS, key_bytes=32)
    assert result.keys_match


def test_threaded_rejects_small_groups(small_params, exploding_source):
    with pytest.raises(InsufficientParties):
        run_threaded(small_params, 2, random_source=exploding_source, min_modulus_bits=SMALL_BITS)


def test_threaded_rejects_wrong_key_count(small_params):
    with pytest.raises(ValueError):
        run_threaded(small_params, 3, private_keys=[1, 2], min_modulus_bits=SMALL_BITS, key_bytes=32)


def test_threaded_accepts_public_key_of_one(modp2048):
    keys = [2, (modp2048.p - 1) // 2, 3]
    result = run_threaded(modp2048, 3, timeout=10.0, private_keys=keys, min_modulus_bits=2048, key_bytes=32)
    assert result.public_keys[1] == 1
    assert len(set(result.final_keys)) == 1
