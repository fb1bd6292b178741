import json

import pytest

from groupdh.common.protocol import (
    IntermediateKeysMsg,
    PublicKeyMsg,
    decode_message,
    encode_message,
)


def test_public_key_message_uses_wire_alias(modp2048):
    big = modp2048.p - 12345
    raw = encode_message(PublicKeyMsg(sender=3, public_key=big))
    obj = json.loads(raw)
    assert obj == {"type": "public key", "sender": 3, "public key": big}

    msg = decode_message(raw)
    assert isinstance(msg, PublicKeyMsg)
    assert msg.public_key == big


def test_intermediate_bundle_keys_survive_json():
    msg = IntermediateKeysMsg(recipient=2, intermediates={1: 10, 3: 30})
    decoded = decode_message(encode_message(msg))
    assert isinstance(decoded, IntermediateKeysMsg)
    assert decoded.intermediates == {1: 10, 3: 30}
    assert decoded.sender == 0


def test_bundle_cannot_contain_recipient_key():
    with pytest.raises(ValueError):
        IntermediateKeysMsg(recipient=2, intermediates={1: 10, 2: 20})


def test_bundle_only_from_coordinator():
    with pytest.raises(ValueError):
        IntermediateKeysMsg(sender=1, recipient=2, intermediates={3: 30})


def test_bundle_never_carries_coordinator_entry():
    with pytest.raises(ValueError):
        IntermediateKeysMsg(recipient=2, intermediates={0: 5})


def test_public_key_of_one_is_accepted():
    assert decode_message(encode_message(PublicKeyMsg(sender=1, public_key=1))).public_key == 1
    with pytest.raises(ValueError):
        PublicKeyMsg(sender=1, public_key=0)


def test_unknown_message_type():
    with pytest.raises(ValueError):
        decode_message('{"type": "hello"}')
    with pytest.raises(ValueError):
        decode_message("[1, 2]")
