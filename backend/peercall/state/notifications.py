"""사용자 알림 채널.

연결 시작/성공/종료/오류 등 사용자에게 즉시 보여야 하는 알림을 전달합니다.
"""

import logging
from collections import deque
from typing import Callable, Deque, List

from ..shared.dto import Notification

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], None]


class Notifier:
    """알림 발행기.

    최근 알림은 ``max_history``개까지만 보관합니다.
    """

    def __init__(self, max_history: int = 100):
        self.history: Deque[Notification] = deque(maxlen=max_history)
        self._listeners: List[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def notify(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.history.append(notification)
        logger.info(f"[Notify] {level}: {message}")
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def info(self, message: str) -> Notification:
        return self.notify("info", message)

    def warning(self, message: str) -> Notification:
        return self.notify("warning", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)
