import random

import pytest

from groupdh.crypto.dh import DomainParameters, MODP_2048

# Mersenne prime 2^127 - 1: small enough for fast property loops.
M127 = DomainParameters(p=2**127 - 1, g=3, name="m127")
M127_BITS = 127


@pytest.fixture
def modp2048():
    return MODP_2048


@pytest.fixture
def small_params():
    return M127


@pytest.fixture
def seeded_source():
    """Deterministic stand-in for secrets.token_bytes."""
    return random.Random(1234).randbytes


@pytest.fixture
def exploding_source():
    def source(n):
        raise AssertionError("random source must not be used")
    return source
