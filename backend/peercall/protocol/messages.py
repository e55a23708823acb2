"""애플리케이션 메시지 봉투 정의 및 코덱.

각 트랜스포트의 데이터 채널로 주고받는 메시지는 ``{"type", "payload"}``
형태의 UTF-8 JSON 한 프레임입니다. 압축이나 분할은 없으며, 파일은 data URL로
인코딩되어 단일 프레임으로 전송됩니다.

Message Types:
    - text: 사용자가 입력한 문자열
    - file: {name, size, mimeType, base64Data}
    - nickname: {nickname}
    - room: {room, participantId} (participantId는 송신자 기준 self 표기)
    - 그 외/누락: OpaqueMessage로 디코딩되어 텍스트처럼 취급

Examples:
    >>> data = encode(TextMessage(payload="hi"))
    >>> decode(data)
    TextMessage(type='text', payload='hi')
"""

import json
import logging
from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import DecodeError

logger = logging.getLogger(__name__)

MESSAGE_TYPE_TEXT = "text"
MESSAGE_TYPE_FILE = "file"
MESSAGE_TYPE_NICKNAME = "nickname"
MESSAGE_TYPE_ROOM = "room"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FilePayload(_Payload):
    """파일 전송 payload. 데이터는 data URL 문자열입니다."""

    name: str
    size: int = 0
    mime_type: str = Field(default="", alias="mimeType")
    base64_data: str = Field(default="", alias="base64Data")


class NicknamePayload(_Payload):
    nickname: str = ""


class RoomPayload(_Payload):
    """룸 변경 payload.

    ``room``이 None 또는 빈 문자열이면 기본 룸으로 취급됩니다.
    """

    room: Optional[str] = None
    participant_id: str = Field(alias="participantId")


class TextMessage(BaseModel):
    type: Literal["text"] = MESSAGE_TYPE_TEXT
    payload: str


class FileMessage(BaseModel):
    type: Literal["file"] = MESSAGE_TYPE_FILE
    payload: FilePayload


class NicknameMessage(BaseModel):
    type: Literal["nickname"] = MESSAGE_TYPE_NICKNAME
    payload: NicknamePayload


class RoomMessage(BaseModel):
    type: Literal["room"] = MESSAGE_TYPE_ROOM
    payload: RoomPayload


class OpaqueMessage(BaseModel):
    """알 수 없는 타입의 메시지.

    스키마 버전이 없으므로 새 타입은 실패 대신 이 변형으로 디코딩되고,
    수신 측에서는 사용자 텍스트로 표시됩니다.
    """

    type: Optional[str] = None
    payload: Any = None

    def as_text(self) -> str:
        """채팅 로그에 표시할 본문. 문자열이 아니면 JSON으로 직렬화합니다."""
        if self.payload is None:
            return ""
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, ensure_ascii=False)


Message = Union[TextMessage, FileMessage, NicknameMessage, RoomMessage, OpaqueMessage]

_MESSAGE_MODELS: Dict[str, Type[BaseModel]] = {
    MESSAGE_TYPE_TEXT: TextMessage,
    MESSAGE_TYPE_FILE: FileMessage,
    MESSAGE_TYPE_NICKNAME: NicknameMessage,
    MESSAGE_TYPE_ROOM: RoomMessage,
}


def text_message(text: str) -> TextMessage:
    return TextMessage(payload=text)


def nickname_message(nickname: str) -> NicknameMessage:
    return NicknameMessage(payload=NicknamePayload(nickname=nickname))


def room_message(room: Optional[str], participant_id: str) -> RoomMessage:
    return RoomMessage(payload=RoomPayload(room=room, participant_id=participant_id))


def file_message(name: str, size: int, mime_type: str, base64_data: str) -> FileMessage:
    return FileMessage(payload=FilePayload(
        name=name, size=size, mime_type=mime_type, base64_data=base64_data,
    ))


def encode(message: Message) -> bytes:
    """메시지 봉투를 UTF-8 JSON 바이트로 직렬화합니다.

    Args:
        message (Message): 직렬화할 메시지

    Returns:
        bytes: 데이터 채널로 보낼 프레임
    """
    data = message.model_dump(mode="json", by_alias=True)
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


def decode(data: Union[bytes, bytearray, memoryview, str]) -> Message:
    """수신 프레임을 메시지 봉투로 파싱합니다.

    Args:
        data: 데이터 채널에서 수신한 프레임 (bytes 또는 str)

    Returns:
        Message: 파싱된 메시지. 타입이 없거나 알 수 없으면 OpaqueMessage

    Raises:
        DecodeError: UTF-8 디코딩 실패, 잘못된 JSON, 알려진 타입의 잘못된 payload
    """
    try:
        text = data if isinstance(data, str) else bytes(data).decode("utf-8")
        raw = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"malformed message frame: {e}") from e

    if not isinstance(raw, dict):
        # type 없는 값은 그대로 텍스트로 취급
        return OpaqueMessage(payload=raw)

    message_type = raw.get("type")
    model = _MESSAGE_MODELS.get(message_type) if isinstance(message_type, str) else None
    if model is None:
        return OpaqueMessage(
            type=message_type if isinstance(message_type, str) else None,
            payload=raw.get("payload"),
        )

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(f"invalid '{message_type}' payload: {e.error_count()} error(s)") from e
