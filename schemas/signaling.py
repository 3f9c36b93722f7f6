"""Client -> server signaling messages.

Every frame a peer sends is one of four message kinds, told apart by its
``type`` field. Payloads (SDP, ICE candidates) are opaque; only their type and
size are checked before they are relayed.
"""
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError, field_validator

from constants import MAX_CHAT_TEXT, MAX_ICE_SIZE, MAX_PEER_ID, MAX_SDP_SIZE

OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"
CHAT = "chat"

CLIENT_MESSAGE_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE, CHAT})

INVALID_MESSAGE = "Invalid message"
UNKNOWN_MESSAGE_TYPE = "Unknown message type"

# First failing field decides the error text
FIELD_ERRORS = {
    "to": "Invalid target",
    "sdp": "Invalid SDP",
    "candidate": "Invalid ICE candidate",
    "text": "Invalid message text",
}

PeerId = Annotated[str, StringConstraints(strict=True, min_length=1, max_length=MAX_PEER_ID)]
Sdp = Annotated[str, StringConstraints(strict=True, max_length=MAX_SDP_SIZE)]
ChatText = Annotated[str, StringConstraints(strict=True, min_length=1, max_length=MAX_CHAT_TEXT)]


class SignalingError(Exception):
    """A client frame was rejected; `message` is safe to send back."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class _ClientMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class OfferMessage(_ClientMessage):
    type: Literal["offer"]
    to: PeerId
    sdp: Sdp


class AnswerMessage(_ClientMessage):
    type: Literal["answer"]
    to: PeerId
    sdp: Sdp


class IceCandidateMessage(_ClientMessage):
    type: Literal["ice-candidate"]
    to: PeerId
    candidate: Any = None

    @field_validator("candidate")
    @classmethod
    def candidate_fits(cls, value):
        if serialized_size(value or "") > MAX_ICE_SIZE:
            raise ValueError("candidate too large")
        return value


class ChatMessage(_ClientMessage):
    type: Literal["chat"]
    text: ChatText


ClientMessage = Annotated[
    Union[OfferMessage, AnswerMessage, IceCandidateMessage, ChatMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)


def serialized_size(value) -> int:
    """Length of the compact JSON encoding of `value`."""
    return len(json.dumps(value, separators=(",", ":"), ensure_ascii=False))


def parse_client_message(data) -> Union[OfferMessage, AnswerMessage, IceCandidateMessage, ChatMessage]:
    """Turn a decoded JSON frame into one of the client message models.

    Raises SignalingError with a generic, client-safe message. The offending
    type value or the pydantic error is never part of that message.
    """
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise SignalingError(INVALID_MESSAGE)
    if data["type"] not in CLIENT_MESSAGE_TYPES:
        raise SignalingError(UNKNOWN_MESSAGE_TYPE)

    try:
        return client_message_adapter.validate_python(data)
    except ValidationError as exc:
        for error in exc.errors():
            for part in error["loc"]:
                if part in FIELD_ERRORS:
                    raise SignalingError(FIELD_ERRORS[part]) from None
        raise SignalingError(INVALID_MESSAGE) from None
