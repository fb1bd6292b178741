"""
Pydantic models for the two messages of a tree-based exchange:
public key broadcast and intermediate key bundle.
"""

import json
from typing import Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Base model: allow population by field name AND alias
# ---------------------------------------------------------------------------


class MessageBase(BaseModel):
    # Lets us do PublicKeyMsg(public_key=...) even though the JSON uses "public key"
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Phase 1: every participant broadcasts g^x mod p
# ---------------------------------------------------------------------------


class PublicKeyMsg(MessageBase):
    type: Literal["public key"] = "public key"
    sender: int = Field(ge=0)
    # g^x can be 1 when ord(g) divides x; still a valid key
    public_key: int = Field(alias="public key", ge=1)


# ---------------------------------------------------------------------------
# Phase 2: coordinator sends each member every intermediate except its own
# ---------------------------------------------------------------------------


class IntermediateKeysMsg(MessageBase):
    type: Literal["intermediate keys"] = "intermediate keys"
    sender: int = Field(default=0, ge=0)
    recipient: int = Field(ge=1)
    # participant index -> g^(x0*xi) mod p
    intermediates: Dict[int, int]

    @model_validator(mode="after")
    def check_bundle(self) -> "IntermediateKeysMsg":
        if self.sender != 0:
            raise ValueError("intermediate keys are only sent by the coordinator")
        if self.recipient in self.intermediates:
            raise ValueError("a participant never receives its own intermediate key")
        if 0 in self.intermediates:
            raise ValueError("the coordinator has no intermediate key")
        return self


# ---------------------------------------------------------------------------
# Union type + JSON helpers
# ---------------------------------------------------------------------------

Message = Union[PublicKeyMsg, IntermediateKeysMsg]


def encode_message(msg: Message) -> str:
    """
    Serialize a message model to a JSON string (one line).

    by_alias=True so that 'public_key' becomes "public key" on the wire.
    Integers go through json.dumps so values of any size survive.
    """
    return json.dumps(msg.model_dump(by_alias=True), separators=(",", ":"), sort_keys=True)


def decode_message(raw: str) -> Message:
    """
    Parse raw JSON string into the correct model, based on 'type'.

    Raises:
        ValueError on unknown type or invalid content.
    """
    obj = json.loads(raw)
    t = obj.get("type") if isinstance(obj, dict) else None

    if t == "public key":
        return PublicKeyMsg(**obj)
    if t == "intermediate keys":
        return IntermediateKeysMsg(**obj)

    raise ValueError(f"Unknown message type: {t!r}")
