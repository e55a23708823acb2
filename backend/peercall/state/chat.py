"""채팅 로그 모듈.

사용자에게 보여야 하는 프로토콜 이벤트(수신 텍스트/파일, 닉네임 변경, 룸 변경)를
순서대로 기록하고 구독자에게 전달합니다. 기록은 메모리에만 유지되며 재시작 시
사라집니다.
"""

import logging
from typing import Callable, List, Optional

from ..shared.dto import ChatMessage

logger = logging.getLogger(__name__)

# 시스템 메시지 작성자 ID
SYSTEM_USER = "[PeerCalls]"

ChatListener = Callable[[ChatMessage], None]


class ChatLog:
    """채팅 로그 저장소.

    Attributes:
        messages (List[ChatMessage]): 추가된 순서대로의 채팅 로그
    """

    def __init__(self):
        self.messages: List[ChatMessage] = []
        self._listeners: List[ChatListener] = []

    def subscribe(self, listener: ChatListener) -> Callable[[], None]:
        """새 로그 항목 구독. 구독 해제 함수를 반환합니다."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_message(
        self,
        user_id: str,
        message: str,
        system: bool = False,
        image: Optional[str] = None,
    ) -> ChatMessage:
        entry = ChatMessage(user_id=user_id, message=message, system=system, image=image)
        self.messages.append(entry)
        logger.debug(f"[Chat] {user_id[:8]}: {message[:50]}")
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def add_system_message(self, message: str) -> ChatMessage:
        return self.add_message(SYSTEM_USER, message, system=True)
