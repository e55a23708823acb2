"""피어 연결 라이프사이클 관리 모듈.

이 모듈은 원격 참가자마다 하나의 트랜스포트를 생성하고, 이벤트 핸들러를
등록하며, 오류/종료/교체 시 세션을 정리합니다. 풀 메시(full mesh) 구조로
각 참가자와 직접 연결되며, 애플리케이션 메시지(채팅, 파일, 닉네임, 룸 변경)는
각 트랜스포트의 데이터 채널로 주고받습니다.

주요 기능:
    - 참가자별 트랜스포트 생성 및 교체 (참가자당 살아있는 연결 최대 1개)
    - 협상 signal을 랑데부 채널로 중계
    - 연결 시 로컬 트랙/닉네임/룸 전송
    - 원격 트랙 mute/unmute/ended를 스트림 상태에 반영
    - 데이터 채널 메시지 디코딩 및 타입별 처리
    - 오류/종료 시 세션, 스트림, 룸 배정 정리

Architecture:
    - PeerConnectionManager: 세션 테이블 소유, 세션 생성/교체/종료
    - PeerHandler: 세션별 명시적 상태 머신 (NEW → CONNECTED → CLOSED)
    - 핸들러는 자신이 만든 세션이 아직 현재 세션인지 확인한 뒤에만
      공유 테이블을 변경함 (교체된 세션의 늦은 이벤트는 무시)

Session State Machine:
    NEW --signal--> NEW             (여러 번, 모두 중계)
    NEW --connect--> CONNECTED      (최대 1회)
    CONNECTED --track/data--> CONNECTED
    {NEW, CONNECTED} --error/close--> CLOSED (종료 상태, 테이블에서 제거)

Classes:
    SessionState: 세션 상태
    PeerHandler: 세션 하나의 이벤트 핸들러 묶음
    PeerConnectionManager: 피어 세션 라이프사이클 관리

Examples:
    기본 사용법:
        >>> manager = PeerConnectionManager(
        ...     sessions=SessionTable(), rooms=RoomManager(), nicknames=NicknameTable(),
        ...     streams=StreamRegistry(), chat=ChatLog(), notifier=Notifier(),
        ...     identity=IdentityTranslator("my-id"),
        ...     emit_signal=rendezvous.emit_signal,
        ... )
        >>> manager.create_peer("peer-456", initiator="peer-456")
        >>> manager.receive_signal("peer-456", {"type": "answer", "sdp": "..."})
        >>> manager.close_peer_connection("peer-456")

See Also:
    webrtc/transport.py: 트랜스포트 계약 및 aiortc 구현
    rooms/room_manager.py: 룸 배정 및 gain 계산
    client.py: 외부에 노출되는 명령 및 브로드캐스트
"""
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from ..errors import DecodeError, TransportError
from ..protocol import (
    ME,
    FileMessage,
    IdentityTranslator,
    Message,
    NicknameMessage,
    OpaqueMessage,
    RoomMessage,
    TextMessage,
    decode,
    encode,
    nickname_message,
    room_message,
)
from ..state import ChatLog, MediaStream, Notifier, StreamRegistry
from .config import ICEServerConfig, ice_config as default_ice_config
from .session_table import PeerSession, SessionTable
from .transport import (
    EVENT_CLOSE,
    EVENT_CONNECT,
    EVENT_DATA,
    EVENT_ERROR,
    EVENT_SIGNAL,
    EVENT_TRACK,
    AiortcTransport,
    TransportFactory,
)

if TYPE_CHECKING:
    from ..rooms import NicknameTable, RoomManager

logger = logging.getLogger(__name__)

SignalEmitter = Callable[[str, dict], None]


class SessionState(str, Enum):
    """피어 세션 상태."""
    NEW = "new"
    CONNECTED = "connected"
    CLOSED = "closed"


class PeerHandler:
    """세션 하나의 트랜스포트 이벤트를 처리하는 상태 머신.

    핸들러는 세션 생성 시 한 번 만들어지며, 자신이 만든 참가자 ID와 세션을
    기억합니다. 모든 핸들러는 상태 변경 전에 ``is_active``를 확인하므로,
    세션이 파괴되거나 교체된 뒤 늦게 도착한 이벤트는 공유 상태를 건드리지
    않습니다.

    Attributes:
        manager (PeerConnectionManager): 소속 매니저
        session (PeerSession): 이 핸들러가 만들어진 세션
        state (SessionState): 현재 상태
    """

    def __init__(self, manager: "PeerConnectionManager", session: PeerSession):
        self.manager = manager
        self.session = session
        self.state = SessionState.NEW

    @property
    def participant_id(self) -> str:
        return self.session.participant_id

    @property
    def is_active(self) -> bool:
        """이 세션이 아직 살아있고 해당 참가자의 현재 세션인지 여부."""
        return (
            self.state is not SessionState.CLOSED
            and self.manager.sessions.is_current(self.session)
        )

    def attach(self) -> None:
        """트랜스포트에 이벤트 핸들러를 등록합니다."""
        transport = self.session.transport
        transport.on(EVENT_SIGNAL, self.handle_signal)
        transport.on(EVENT_CONNECT, self.handle_connect)
        transport.on(EVENT_TRACK, self.handle_track)
        transport.on(EVENT_DATA, self.handle_data)
        transport.on(EVENT_ERROR, self.handle_error)
        transport.on(EVENT_CLOSE, self.handle_close)

    # ========== Event handlers ==========

    def handle_signal(self, payload: dict) -> None:
        """협상 payload를 랑데부 채널로 그대로 중계합니다.

        연결 전후 몇 번이든 발생할 수 있으며, 중복 제거 없이 모두 중계합니다.
        세션 상태는 변경하지 않습니다.
        """
        if not self.is_active:
            logger.debug(f"[WebRTC] 피어 {self.participant_id[:8]} 비활성 세션의 signal 무시")
            return
        logger.debug(f"[WebRTC] 피어 {self.participant_id[:8]} signal 중계: {payload.get('type')}")
        self.manager.relay_signal(self.participant_id, payload)

    def handle_connect(self) -> None:
        """연결 성립 처리.

        Workflow:
            1. 로컬 미디어 트랙을 모두 트랜스포트에 추가
               (스트림 획득과 연결 성립의 순서가 보장되지 않으므로 명시적으로 전송)
            2. 로컬 닉네임이 있으면 nickname 메시지 전송
            3. 로컬 룸이 있으면 self sentinel로 표기한 room 메시지 전송
        """
        if not self.is_active or self.state is SessionState.CONNECTED:
            return
        self.state = SessionState.CONNECTED
        manager = self.manager
        transport = self.session.transport
        logger.info(f"[WebRTC] 피어 {self.participant_id[:8]} 연결됨")
        manager.notifier.warning("Peer connection established")

        for stream in manager.streams.get_streams(ME):
            for track in stream.get_tracks():
                transport.add_track(track, stream)

        nickname = manager.nicknames.get(ME)
        if nickname:
            manager.send_to_peer(self.session, nickname_message(nickname))

        if manager.rooms.has_room(ME):
            manager.send_to_peer(
                self.session,
                room_message(manager.rooms.assignments[ME], manager.identity.to_wire(ME)),
            )

    def handle_track(self, track: Any, stream: MediaStream) -> None:
        """원격 트랙 수신 처리.

        mute는 트랙 제거로, unmute는 트랙 추가로 스트림 상태에 반영합니다.
        aiortc의 RemoteStreamTrack은 mute/unmute를 내보내지 않고 수신이 끝나면
        ended만 내보내므로, ended도 트랙 제거로 처리합니다.
        스트림 등록은 멱등이므로 트랙마다 호출합니다.
        """
        if not self.is_active:
            return
        participant_id = self.participant_id
        streams = self.manager.streams
        logger.info(f"[WebRTC] 피어 {participant_id[:8]} {getattr(track, 'kind', '?')} 트랙 수신")

        def on_mute():
            if self.is_active:
                logger.info(f"[WebRTC] 피어 {participant_id[:8]} 트랙 mute")
                streams.remove_track(participant_id, stream, track)

        def on_unmute():
            if self.is_active:
                logger.info(f"[WebRTC] 피어 {participant_id[:8]} 트랙 unmute")
                streams.add_track(participant_id, stream, track)

        def on_ended():
            if self.is_active:
                logger.info(f"[WebRTC] 피어 {participant_id[:8]} 트랙 종료")
                streams.remove_track(participant_id, stream, track)

        track.on("mute", on_mute)
        track.on("unmute", on_unmute)
        track.on("ended", on_ended)
        streams.add_stream(participant_id, stream)

    def handle_data(self, data: Union[bytes, str]) -> None:
        """데이터 채널 메시지를 디코딩하고 타입별로 처리합니다.

        디코딩 실패는 로컬 전용 오류로, 메시지를 버리고 세션은 유지합니다.
        """
        if not self.is_active:
            return
        try:
            message = decode(data)
        except DecodeError as e:
            logger.warning(f"[WebRTC] 피어 {self.participant_id[:8]} 메시지 디코딩 실패, 무시: {e}")
            return
        logger.debug(f"[WebRTC] 피어 {self.participant_id[:8]} 메시지 수신: {message.type}")
        self.manager.dispatch_message(self.participant_id, message)

    def handle_error(self, error: Exception) -> None:
        """트랜스포트 오류 처리. 이미 정리된 세션이면 아무것도 하지 않습니다."""
        if not self.is_active:
            logger.debug(f"[WebRTC] 피어 {self.participant_id[:8]} 정리된 세션의 오류 무시: {error}")
            return
        logger.error(f"[WebRTC] 피어 {self.participant_id[:8]} 연결 오류: {error}")
        self.manager.notifier.error("A peer connection error occurred")
        self.teardown(destroy=True)

    def handle_close(self) -> None:
        """트랜스포트 종료 처리. 이미 정리된 세션이면 아무것도 하지 않습니다."""
        if not self.is_active:
            return
        logger.info(f"[WebRTC] 피어 {self.participant_id[:8]} 연결 종료")
        self.manager.notifier.error("Peer connection closed")
        self.teardown(destroy=False)

    # ========== Teardown ==========

    def teardown(self, destroy: bool) -> bool:
        """세션을 CLOSED로 전이하고 관련 상태를 정리합니다.

        상태를 먼저 CLOSED로 바꾸므로 destroy()가 동기적으로 내보내는
        close 이벤트는 무시됩니다. 여러 번 호출해도 결과는 같습니다.

        Args:
            destroy (bool): 트랜스포트의 destroy()를 호출할지 여부

        Returns:
            bool: 이번 호출에서 정리가 수행되었는지 여부
        """
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        manager = self.manager
        participant_id = self.participant_id

        if destroy:
            self.session.transport.destroy()

        if manager.sessions.remove(participant_id, self.session) is not None:
            manager.streams.remove_user(participant_id)
            manager.rooms.remove_participant(participant_id)
        if manager.handlers.get(participant_id) is self:
            del manager.handlers[participant_id]
        return True


class PeerConnectionManager:
    """원격 참가자별 트랜스포트를 관리하는 라이프사이클 컨트롤러.

    모든 메서드는 이벤트 루프 스레드에서만 호출되며, 블로킹 I/O를 하지 않습니다.
    트랜스포트 생성, signal 중계, 데이터 전송은 모두 fire-and-forget입니다.

    Attributes:
        sessions (SessionTable): 참가자 ID → PeerSession
        handlers (Dict[str, PeerHandler]): 참가자 ID → 현재 세션의 핸들러
        rooms (RoomManager): 룸 배정 테이블
        nicknames (NicknameTable): 닉네임 테이블
        streams (StreamRegistry): 참가자별 미디어 스트림
        chat (ChatLog): 채팅 로그
        notifier (Notifier): 사용자 알림 채널
        identity (IdentityTranslator): self/wire 식별자 변환
        emit_signal (Optional[SignalEmitter]): 랑데부 채널로 signal 전송
        transport_factory (TransportFactory): 트랜스포트 생성 함수
        ice_config (ICEServerConfig): ICE 서버 설정
    """

    def __init__(
        self,
        sessions: SessionTable,
        rooms: "RoomManager",
        nicknames: "NicknameTable",
        streams: StreamRegistry,
        chat: ChatLog,
        notifier: Notifier,
        identity: IdentityTranslator,
        emit_signal: Optional[SignalEmitter] = None,
        transport_factory: TransportFactory = AiortcTransport,
        ice_config: ICEServerConfig = default_ice_config,
    ):
        self.sessions = sessions
        self.handlers: Dict[str, PeerHandler] = {}
        self.rooms = rooms
        self.nicknames = nicknames
        self.streams = streams
        self.chat = chat
        self.notifier = notifier
        self.identity = identity
        self.emit_signal = emit_signal
        self.transport_factory = transport_factory
        self.ice_config = ice_config

    def create_peer(
        self,
        participant_id: str,
        initiator: Union[bool, str],
        stream: Optional[MediaStream] = None,
    ) -> PeerSession:
        """참가자와의 새 세션을 생성합니다.

        이미 세션이 있으면 기존 트랜스포트를 destroy하고 테이블에서 제거한 뒤
        새 세션을 만듭니다(교체). 빠른 재연결 경쟁에서도 참가자당 살아있는
        트랜스포트는 하나입니다.

        Args:
            participant_id (str): 원격 참가자 ID
            initiator (Union[bool, str]): initiator 역할 여부, 또는 양쪽이 합의한
                "지정 initiator" ID. 문자열이면 participant_id와 같을 때
                이쪽이 initiator가 됩니다.
            stream (Optional[MediaStream]): 생성 시 첨부할 로컬 스트림
                (트랙이 없으면 첨부하지 않음)

        Returns:
            PeerSession: 테이블에 등록된 새 세션. 연결 결과는 이벤트로 비동기 통지됨

        Examples:
            >>> session = manager.create_peer("peer-456", initiator="peer-456")
            >>> session.transport
            <AiortcTransport ...>
        """
        logger.info(f"[WebRTC] 피어 {participant_id[:8]} 세션 생성 시작")
        self.notifier.warning("Connecting to peer...")

        old_handler = self.handlers.get(participant_id)
        if old_handler is not None or participant_id in self.sessions:
            logger.info(f"[WebRTC] 피어 {participant_id[:8]} 기존 연결 정리")
            self.notifier.info("Cleaning up old connection...")
            self._destroy_current(participant_id)

        if isinstance(initiator, bool):
            is_initiator = initiator
        else:
            is_initiator = participant_id == initiator
        if stream is not None and not stream.get_tracks():
            stream = None

        transport = self.transport_factory(is_initiator, self.ice_config, stream)
        session = PeerSession(participant_id=participant_id, transport=transport)
        handler = PeerHandler(self, session)
        handler.attach()
        self.sessions.add(session)
        self.handlers[participant_id] = handler
        logger.info(f"[WebRTC] 피어 {participant_id[:8]} 세션 생성 완료 (initiator={is_initiator})")
        return session

    def _destroy_current(self, participant_id: str) -> None:
        handler = self.handlers.get(participant_id)
        if handler is not None:
            handler.teardown(destroy=True)

    def close_peer_connection(self, participant_id: str) -> bool:
        """참가자와의 세션을 명시적으로 종료합니다.

        Returns:
            bool: 종료할 세션이 있었는지 여부
        """
        if participant_id not in self.sessions:
            return False
        self._destroy_current(participant_id)
        logger.info(f"[WebRTC] 피어 {participant_id[:8]} 연결 종료")
        return True

    def cleanup_all(self) -> None:
        """모든 세션을 종료합니다."""
        for participant_id in list(self.sessions):
            self.close_peer_connection(participant_id)
        logger.info("[WebRTC] 모든 피어 연결 정리 완료")

    def get_transport(self, participant_id: str):
        session = self.sessions.get(participant_id)
        return session.transport if session else None

    # ========== Signaling ==========

    def relay_signal(self, participant_id: str, payload: dict) -> None:
        if self.emit_signal is None:
            logger.warning(f"[WebRTC] 랑데부 채널 없음, 피어 {participant_id[:8]} signal 버림")
            return
        self.emit_signal(participant_id, payload)

    def receive_signal(self, participant_id: str, signal: dict) -> bool:
        """랑데부 채널에서 받은 signal을 해당 세션의 트랜스포트로 전달합니다.

        세션이 없으면 버립니다. 첫 signal에 세션을 만드는 것은 호출자의 선택입니다.

        Returns:
            bool: 전달 여부
        """
        session = self.sessions.get(participant_id)
        if session is None:
            logger.warning(f"[WebRTC] 피어 {participant_id[:8]} 세션 없음, signal 버림")
            return False
        session.transport.signal(signal)
        return True

    # ========== Messaging ==========

    def send_to_peer(self, session: PeerSession, message: Message, data: Optional[bytes] = None) -> bool:
        """세션 하나로 메시지를 전송합니다. 실패는 해당 피어에 국한됩니다."""
        if data is None:
            data = encode(message)
        try:
            session.transport.send(data)
        except TransportError as e:
            logger.error(f"[WebRTC] 피어 {session.participant_id[:8]} 전송 실패: {e}")
            return False
        return True

    def send_to_all(self, message: Message) -> int:
        """모든 세션으로 같은 인코딩 바이트를 전송합니다.

        Returns:
            int: 전송에 성공한 세션 수
        """
        data = encode(message)
        sessions = self.sessions.sessions()
        logger.debug(f"[WebRTC] 메시지 타입 {message.type} 전송: {len(sessions)}개 피어")
        return sum(1 for session in sessions if self.send_to_peer(session, message, data))

    def dispatch_message(self, participant_id: str, message: Message) -> None:
        """원격 참가자가 보낸 메시지를 로컬 상태에 반영합니다.

        Message Handling:
            - file: 파일 이름과 data URL을 채팅 로그에 추가
            - nickname: 시스템 메시지 추가 후 닉네임 테이블 갱신
            - room: participantId를 로컬 표기로 변환 후 룸 설정 (self도 아니고
              세션도 없는 참가자는 무시)
            - text/그 외: 본문을 채팅 로그에 추가
        """
        chat = self.chat
        if isinstance(message, FileMessage):
            chat.add_message(participant_id, message.payload.name, image=message.payload.base64_data)
        elif isinstance(message, NicknameMessage):
            nickname = message.payload.nickname
            chat.add_system_message(
                f"User {self.nicknames.get_nickname(participant_id)} "
                f"is now known as {nickname or participant_id}"
            )
            self.nicknames.set_nickname(participant_id, nickname)
        elif isinstance(message, RoomMessage):
            room = message.payload.room
            target = self.identity.to_local(participant_id, message.payload.participant_id)
            if target != ME and target not in self.sessions:
                # 세션이 없는 참가자의 배정은 정리될 시점이 없으므로 받지 않음
                logger.info(f"[Room] 세션 없는 참가자 {target[:8]}의 룸 변경 무시")
                return
            chat.add_system_message(
                f"User {self.nicknames.get_nickname(participant_id)} "
                f"moved to room {room or self.rooms.default_room}"
            )
            self.rooms.set_room(target, room)
        elif isinstance(message, TextMessage):
            chat.add_message(participant_id, message.payload)
        elif isinstance(message, OpaqueMessage):
            chat.add_message(participant_id, message.as_text())
