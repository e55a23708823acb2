"""랑데부 채널 모듈.

랑데부 서버와 WebSocket으로 연결하여 협상 signal과 참가자 목록 통지를
주고받습니다. 피어 간 애플리케이션 메시지는 이 채널을 거치지 않습니다.

Frame Format:
    모든 프레임은 ``{"type": <event>, "payload": <object>}`` 형태의 JSON입니다.

    Outbound:
        - signal: {"participantId": "peer-456", "signal": {...}}

    Inbound:
        - id: {"participantId": "my-id"}  (서버가 발급한 로컬 참가자 ID)
        - signal: {"participantId": "peer-456", "signal": {...}}
        - users: {"initiator": "peer-456", "users": [{"participantId": "..."}]}
        - hangUp: {"participantId": "peer-456"}

Examples:
    >>> client = CallClient(room="main", nickname="alice")
    >>> channel = RendezvousChannel("ws://localhost:3000/ws", client)
    >>> await channel.run()
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Set, Union

import websockets

if TYPE_CHECKING:
    from .client import CallClient

logger = logging.getLogger(__name__)

EVENT_ID = "id"
EVENT_SIGNAL = "signal"
EVENT_USERS = "users"
EVENT_HANG_UP = "hangUp"


class RendezvousChannel:
    """랑데부 서버 WebSocket 어댑터.

    Attributes:
        url (str): 랑데부 서버 WebSocket URL
        client (CallClient): 이벤트를 전달할 통화 클라이언트
        ws: 연결된 WebSocket (연결 전에는 None)
    """

    def __init__(self, url: str, client: "CallClient"):
        self.url = url
        self.client = client
        self.ws = None
        # Keep references so pending sends are not garbage collected
        self._tasks: Set[asyncio.Task] = set()
        client.set_signal_emitter(self.emit_signal)

    @property
    def is_connected(self) -> bool:
        return self.ws is not None

    async def connect(self) -> None:
        logger.info(f"[Rendezvous] 연결 중: {self.url}")
        self.ws = await websockets.connect(self.url, ping_interval=20, ping_timeout=10)
        logger.info("[Rendezvous] 연결됨")

    async def run(self) -> None:
        """연결 후 프레임을 수신하여 처리합니다. 연결이 끊기면 반환합니다."""
        if self.ws is None:
            await self.connect()
        try:
            async for message in self.ws:
                self.handle_message(message)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning(f"[Rendezvous] 연결 종료: {e}")
        finally:
            self.ws = None

    async def close(self) -> None:
        ws, self.ws = self.ws, None
        if ws is not None:
            await ws.close()
            logger.info("[Rendezvous] 연결 해제")

    # ========== Outbound ==========

    def emit(self, event: str, payload: Any) -> None:
        """프레임을 fire-and-forget으로 전송합니다. 연결 전이면 버립니다."""
        if self.ws is None:
            logger.warning(f"[Rendezvous] 연결 없음, {event} 프레임 버림")
            return
        frame = json.dumps({"type": event, "payload": payload}, ensure_ascii=False)
        task = asyncio.ensure_future(self._send(frame))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, frame: str) -> None:
        ws = self.ws
        if ws is None:
            return
        try:
            await ws.send(frame)
        except websockets.exceptions.ConnectionClosed as e:
            logger.error(f"[Rendezvous] 프레임 전송 실패: {e}")

    def emit_signal(self, participant_id: str, signal: dict) -> None:
        self.emit(EVENT_SIGNAL, {"participantId": participant_id, "signal": signal})

    # ========== Inbound ==========

    def handle_message(self, raw: Union[str, bytes]) -> bool:
        """수신 프레임 하나를 처리합니다.

        형식이 잘못된 프레임은 로그만 남기고 건너뜁니다.

        Returns:
            bool: 프레임이 처리되었는지 여부
        """
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[Rendezvous] JSON 파싱 실패, 무시: {e}")
            return False
        if not isinstance(frame, dict):
            logger.warning(f"[Rendezvous] 잘못된 프레임, 무시: {frame!r}")
            return False

        event = frame.get("type")
        payload = frame.get("payload")
        if not isinstance(payload, dict):
            logger.warning(f"[Rendezvous] {event} 프레임 payload 누락, 무시")
            return False

        try:
            if event == EVENT_ID:
                self.client.set_user_id(payload["participantId"])
            elif event == EVENT_SIGNAL:
                self.client.receive_signal(payload["participantId"], payload["signal"])
            elif event == EVENT_USERS:
                participant_ids = [user["participantId"] for user in payload["users"]]
                self.client.handle_users(payload.get("initiator"), participant_ids)
            elif event == EVENT_HANG_UP:
                self.client.leave_peer(payload["participantId"])
            else:
                logger.debug(f"[Rendezvous] 알 수 없는 프레임 타입: {event}")
                return False
        except (KeyError, TypeError) as e:
            logger.warning(f"[Rendezvous] {event} 프레임 필드 누락, 무시: {e}")
            return False
        return True
