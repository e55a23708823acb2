"""데이터 채널 메시지 프로토콜.

Classes:
    TextMessage, FileMessage, NicknameMessage, RoomMessage: 알려진 메시지 봉투
    OpaqueMessage: 알 수 없는 타입의 봉투 (텍스트로 취급)
    IdentityTranslator: self/wire 식별자 변환
"""

from .messages import (
    Message,
    TextMessage,
    FileMessage,
    NicknameMessage,
    RoomMessage,
    OpaqueMessage,
    FilePayload,
    NicknamePayload,
    RoomPayload,
    text_message,
    file_message,
    nickname_message,
    room_message,
    encode,
    decode,
)
from .identity import IdentityTranslator, ME

__all__ = [
    "Message",
    "TextMessage",
    "FileMessage",
    "NicknameMessage",
    "RoomMessage",
    "OpaqueMessage",
    "FilePayload",
    "NicknamePayload",
    "RoomPayload",
    "text_message",
    "file_message",
    "nickname_message",
    "room_message",
    "encode",
    "decode",
    "IdentityTranslator",
    "ME",
]
