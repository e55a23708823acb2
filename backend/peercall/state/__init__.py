"""UI/상태 계층과 공유하는 로컬 상태.

Classes:
    ChatLog: 채팅 로그
    Notifier: 사용자 알림 채널
    StreamRegistry: 참가자별 미디어 스트림
    MediaStream: 트랙 묶음
"""

from .chat import ChatLog, SYSTEM_USER
from .notifications import Notifier
from .streams import MediaStream, StreamRegistry

__all__ = [
    "ChatLog",
    "SYSTEM_USER",
    "Notifier",
    "MediaStream",
    "StreamRegistry",
]
