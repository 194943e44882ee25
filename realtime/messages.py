"""Inbound realtime message schemas.

Every client message is an envelope ``{"event": <name>, "data": <payload>}``.
The event name selects exactly one model below; anything else is rejected
before it reaches the presence service.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from game.session import TestResult


class MessageError(ValueError):
    """An inbound message could not be parsed."""

    def __init__(self, message: str, details: Optional[list] = None):
        super().__init__(message)
        self.details = details or []


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class TypingStatusData(_Payload):
    is_typing: bool = Field(alias='isTyping')


class TypingStartData(_Payload):
    is_typing: bool = Field(default=True, alias='isTyping')
    test_id: Optional[str] = Field(default=None, alias='testId')


class TypingUpdateData(_Payload):
    wpm: float = Field(ge=0)
    accuracy: float = Field(ge=0, le=100)
    progress: float = Field(default=0, ge=0, le=100)


class TypingEndData(_Payload):
    wpm: float = Field(ge=0)
    accuracy: float = Field(ge=0, le=100)
    errors: int = Field(ge=0)
    consistency: float = Field(default=0, ge=0, le=100)
    words_typed: int = Field(default=0, ge=0, alias='wordsTyped')
    time_spent: float = Field(ge=0, alias='timeSpent')
    text_content: str = Field(default='', alias='textContent', max_length=20000)
    test_type: str = Field(default='practice', alias='testType', max_length=32)
    difficulty: str = Field(default='intermediate', max_length=32)

    def to_result(self) -> TestResult:
        return TestResult(
            wpm=self.wpm,
            accuracy=self.accuracy,
            errors=self.errors,
            consistency=self.consistency,
            words_typed=self.words_typed,
            time_spent=int(round(self.time_spent)),
        )


class RoomData(_Payload):
    room_id: str = Field(alias='roomId', min_length=1, max_length=100)

    @model_validator(mode='before')
    @classmethod
    def _accept_bare_room_id(cls, value: Any) -> Any:
        # older clients send the room id as a plain string
        if isinstance(value, (str, int)):
            return {'roomId': str(value)}
        return value


class _Message(BaseModel):
    model_config = ConfigDict(extra='ignore')


class JoinLeaderboard(_Message):
    event: Literal['join-leaderboard']


class LeaveLeaderboard(_Message):
    event: Literal['leave-leaderboard']


class TypingStatus(_Message):
    event: Literal['typing-status']
    data: TypingStatusData


class TypingStart(_Message):
    event: Literal['typing-start']
    data: TypingStartData = Field(default_factory=TypingStartData)


class TypingUpdate(_Message):
    event: Literal['typing-update']
    data: TypingUpdateData


class TypingEnd(_Message):
    event: Literal['typing-end', 'test-completed']
    data: TypingEndData


class JoinTypingRoom(_Message):
    event: Literal['join-typing-room']
    data: RoomData


class LeaveTypingRoom(_Message):
    event: Literal['leave-typing-room']
    data: RoomData


InboundMessage = Annotated[
    Union[
        JoinLeaderboard,
        LeaveLeaderboard,
        TypingStatus,
        TypingStart,
        TypingUpdate,
        TypingEnd,
        JoinTypingRoom,
        LeaveTypingRoom,
    ],
    Field(discriminator='event'),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes, dict]) -> BaseModel:
    """
    Parse and validate one inbound message.

    Raises:
        MessageError: Not JSON, unknown event, or a payload missing required fields
    """
    try:
        if isinstance(raw, (str, bytes)):
            return _inbound_adapter.validate_json(raw)
        return _inbound_adapter.validate_python(raw)
    except ValidationError as e:
        details = [
            {'loc': [str(part) for part in err['loc']], 'msg': err['msg']}
            for err in e.errors()
        ]
        raise MessageError("Invalid message", details) from e
