"""
Message serializers.

The queue stores payloads as opaque bytes; a serializer turns a Message
into those bytes and back.
"""

import pickle
from abc import ABC, abstractmethod

from pydantic import ValidationError

from tablequeue.types.job import Message


class MessageSerializer(ABC):
    """Converts messages to and from the stored payload."""

    @abstractmethod
    def serialize(self, message: Message) -> bytes:
        """Encode a message for storage."""

    @abstractmethod
    def unserialize(self, payload: bytes) -> Message:
        """
        Decode a stored payload.

        Raises:
            ValueError: If the payload is not a valid message.
        """


class JsonMessageSerializer(MessageSerializer):
    """Stores messages as UTF-8 JSON."""

    def serialize(self, message: Message) -> bytes:
        return message.model_dump_json().encode("utf-8")

    def unserialize(self, payload: bytes) -> Message:
        try:
            return Message.model_validate_json(payload)
        except ValidationError as e:
            raise ValueError(f"Invalid message payload: {e}") from e


class PickleMessageSerializer(MessageSerializer):
    """
    Stores messages with pickle.

    Only use this when every producer is trusted: unpickling runs code.
    """

    def serialize(self, message: Message) -> bytes:
        return pickle.dumps(message)

    def unserialize(self, payload: bytes) -> Message:
        try:
            message = pickle.loads(payload)
        except Exception as e:
            # Corrupt pickles fail with almost any exception type
            raise ValueError(f"Invalid message payload: {e}") from e
        if not isinstance(message, Message):
            raise ValueError(f"Payload holds {type(message).__name__}, not Message")
        return message


_SERIALIZERS: dict[str, type[MessageSerializer]] = {
    "json": JsonMessageSerializer,
    "pickle": PickleMessageSerializer,
}


def get_serializer(name: str) -> MessageSerializer:
    """
    Build a serializer by its configured name.

    Args:
        name: "json" or "pickle".

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return _SERIALIZERS[name]()
    except KeyError:
        raise ValueError(f"Unknown serializer: {name}") from None
