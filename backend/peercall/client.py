"""통화 클라이언트 모듈.

UI/상태 계층에 노출되는 명령과 읽기 전용 뷰를 제공하는 진입점입니다.
세션 테이블, 룸/닉네임 테이블, 채팅 로그, 스트림 상태를 한 곳에서 생성하고
라이프사이클 컨트롤러와 연결합니다.

주요 기능:
    - joinPeer / leavePeer / hangUp: 피어 세션 생성 및 종료
    - sendToAll: 로컬 상태를 먼저 갱신한 뒤 모든 세션으로 메시지 브로드캐스트
    - setLocalRoom / setLocalNickname: 룸/닉네임 변경 브로드캐스트
    - sendFile: 로컬 파일을 비동기로 읽어 data URL로 전송
    - receive_signal / handle_users: 랑데부 채널 이벤트 처리
    - playback_track: 원격 오디오에 룸 gain을 적용한 재생 트랙 생성

Examples:
    >>> client = CallClient(user_id="my-id", nickname="alice")
    >>> client.join_peer("peer-456", initiator="peer-456")
    >>> client.send_text("hi")
    >>> client.set_local_room("team1")
"""

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import UnsupportedCapability
from .protocol import (
    ME,
    FileMessage,
    IdentityTranslator,
    Message,
    NicknameMessage,
    OpaqueMessage,
    RoomMessage,
    TextMessage,
    file_message,
    nickname_message,
    room_message,
    text_message,
)
from .rooms import NicknameTable, RoomManager
from .shared.dto import ChatMessage, Notification
from .state import ChatLog, MediaStream, Notifier, StreamRegistry
from .webrtc import (
    AiortcTransport,
    ICEServerConfig,
    PeerConnectionManager,
    PeerSession,
    RoomGainTrack,
    SessionState,
    SessionTable,
    Transport,
    TransportFactory,
    ice_config as default_ice_config,
)
from .webrtc.peer_manager import SignalEmitter

logger = logging.getLogger(__name__)

FileReader = Callable[[str], bytes]


def read_file(path: str) -> bytes:
    return Path(path).read_bytes()


class CallClient:
    """다자간 통화의 피어 연결 코어.

    모든 명령은 이벤트 루프 스레드에서 호출되어야 하며 블로킹하지 않습니다.
    (send_file의 파일 읽기만 별도 스레드에서 비동기로 수행됩니다.)

    Attributes:
        identity (IdentityTranslator): 로컬 참가자 ID 기준 식별자 변환
        sessions (SessionTable): 피어 세션 테이블
        rooms (RoomManager): 룸 배정 테이블
        nicknames (NicknameTable): 닉네임 테이블
        streams (StreamRegistry): 참가자별 미디어 스트림
        chat (ChatLog): 채팅 로그
        notifier (Notifier): 사용자 알림 채널
        peer_manager (PeerConnectionManager): 라이프사이클 컨트롤러
        file_reader (Optional[FileReader]): 로컬 파일 읽기 기능 (None이면 미지원)
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        room: Optional[str] = None,
        nickname: Optional[str] = None,
        emit_signal: Optional[SignalEmitter] = None,
        transport_factory: TransportFactory = AiortcTransport,
        ice_config: ICEServerConfig = default_ice_config,
        file_reader: Optional[FileReader] = read_file,
    ):
        self.identity = IdentityTranslator(user_id)
        self.sessions = SessionTable()
        self.rooms = RoomManager(local_room=room)
        self.nicknames = NicknameTable(local_nickname=nickname)
        self.streams = StreamRegistry()
        self.chat = ChatLog()
        self.notifier = Notifier()
        self.file_reader = file_reader
        # 로컬 ID 발급 전에 도착한 참가자 목록 (initiator, ids, stream)
        self._pending_users: Optional[Tuple[Optional[str], List[str], Optional[MediaStream]]] = None
        self.peer_manager = PeerConnectionManager(
            sessions=self.sessions,
            rooms=self.rooms,
            nicknames=self.nicknames,
            streams=self.streams,
            chat=self.chat,
            notifier=self.notifier,
            identity=self.identity,
            emit_signal=emit_signal,
            transport_factory=transport_factory,
            ice_config=ice_config,
        )

    # ========== Identity / rendezvous wiring ==========

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.local_id

    def set_user_id(self, user_id: str) -> None:
        """랑데부 서버가 발급한 로컬 참가자 ID를 설정합니다."""
        self.identity.local_id = user_id
        logger.info(f"[PeerCall] 로컬 참가자 ID: {user_id}")
        if self._pending_users is not None:
            initiator, participant_ids, stream = self._pending_users
            self._pending_users = None
            self.handle_users(initiator, participant_ids, stream)

    def set_signal_emitter(self, emit_signal: Optional[SignalEmitter]) -> None:
        self.peer_manager.emit_signal = emit_signal

    # ========== Read-only views ==========

    @property
    def peers(self) -> Mapping[str, Transport]:
        return self.sessions.transports()

    @property
    def room_assignments(self) -> Mapping[str, Optional[str]]:
        return MappingProxyType(self.rooms.assignments)

    @property
    def nickname_map(self) -> Mapping[str, str]:
        return MappingProxyType(self.nicknames.nicknames)

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self.chat.messages)

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        """피어 연결/종료/오류 알림 (최근 ``Notifier.history``만큼)."""
        return tuple(self.notifier.history)

    # ========== Peer commands ==========

    def join_peer(
        self,
        participant_id: str,
        initiator: Union[bool, str],
        stream: Optional[MediaStream] = None,
    ) -> PeerSession:
        return self.peer_manager.create_peer(participant_id, initiator, stream)

    def leave_peer(self, participant_id: str) -> bool:
        return self.peer_manager.close_peer_connection(participant_id)

    def hang_up(self) -> None:
        self.peer_manager.cleanup_all()

    def receive_signal(self, participant_id: str, signal: dict) -> bool:
        return self.peer_manager.receive_signal(participant_id, signal)

    def handle_users(
        self,
        initiator: Optional[str],
        participant_ids: Iterable[str],
        stream: Optional[MediaStream] = None,
    ) -> int:
        """랑데부 서버의 참가자 목록 통지를 처리합니다.

        자신과 이미 세션이 있는 참가자를 제외한 모든 참가자와 세션을 만듭니다.
        로컬 ID를 아직 모르면 자기 자신을 구분할 수 없으므로, 목록을 보관했다가
        set_user_id() 시점에 처리합니다.

        Returns:
            int: 새로 만든 세션 수
        """
        participant_ids = list(participant_ids)
        if self.identity.local_id is None:
            logger.warning("[PeerCall] 로컬 ID 발급 전 참가자 목록 수신, ID 수신 후 처리")
            self._pending_users = (initiator, participant_ids, stream)
            return 0
        self.notifier.info(f"Connected users: {len(participant_ids)}")
        created = 0
        for participant_id in participant_ids:
            if self.identity.is_self(participant_id) or participant_id in self.sessions:
                continue
            self.join_peer(participant_id, initiator or False, stream)
            created += 1
        return created

    def playback_track(self, participant_id: str, track: Any) -> RoomGainTrack:
        """원격 오디오 트랙을 룸 gain이 적용된 재생용 트랙으로 감쌉니다.

        gain은 프레임마다 룸 테이블에서 다시 계산되므로 룸 변경이 바로 반영됩니다.
        """
        return RoomGainTrack(track, lambda: self.rooms.resolve_gain(ME, participant_id))

    def set_local_stream(self, stream: MediaStream) -> None:
        """로컬 미디어 스트림을 등록하고 이미 연결된 피어에게 트랙을 추가합니다.

        아직 연결되지 않은 피어는 connect 시점에 트랙을 받습니다.
        """
        self.streams.add_stream(ME, stream)
        for handler in list(self.peer_manager.handlers.values()):
            if handler.state is SessionState.CONNECTED:
                for track in stream.get_tracks():
                    handler.session.transport.add_track(track, stream)

    # ========== Outbound broadcast ==========

    def send_message(self, message: Message) -> int:
        """메시지를 로컬 상태에 먼저 반영한 뒤 모든 세션으로 전송합니다.

        로컬 반영은 피어로부터 같은 메시지를 받은 것과 같은 효과를 가지며,
        네트워크 전송보다 항상 먼저 일어납니다. 전송 확인은 수집하지 않습니다.

        Message Handling:
            - file: "Send file" 로그 추가 (data URL 포함)
            - nickname: 시스템 메시지 추가 후 로컬 닉네임 갱신
            - room: 시스템 메시지 추가 후 룸 설정, 로컬 실제 ID는 sentinel로 전송
            - text/그 외: 본문을 로컬 채팅 로그에 추가

        Returns:
            int: 전송에 성공한 세션 수
        """
        chat = self.chat
        if isinstance(message, FileMessage):
            chat.add_message(
                ME,
                f'Send file: "{message.payload.name}" to all peers',
                image=message.payload.base64_data,
            )
        elif isinstance(message, NicknameMessage):
            chat.add_system_message(f"You are now known as: {message.payload.nickname}")
            self.nicknames.set_nickname(ME, message.payload.nickname)
        elif isinstance(message, RoomMessage):
            room = message.payload.room
            target = message.payload.participant_id
            if self.identity.is_self(target):
                target = ME
                chat.add_system_message(f"You are now in the room: {room}")
            else:
                chat.add_system_message(
                    f"User {self.nicknames.get_nickname(target)} "
                    f"moved to room {room or self.rooms.default_room}"
                )
            self.rooms.set_room(target, room)
            message = room_message(room, self.identity.to_wire(target))
        elif isinstance(message, TextMessage):
            chat.add_message(ME, message.payload)
        elif isinstance(message, OpaqueMessage):
            chat.add_message(ME, message.as_text())

        return self.peer_manager.send_to_all(message)

    def send_text(self, text: str) -> int:
        return self.send_message(text_message(text))

    def set_local_nickname(self, nickname: str) -> int:
        return self.send_message(nickname_message(nickname))

    def set_local_room(self, room: Optional[str]) -> int:
        return self.send_message(room_message(room, ME))

    def set_room(self, participant_id: str, room: Optional[str]) -> int:
        """다른 참가자를 룸으로 옮기고 모든 피어에게 알립니다."""
        return self.send_message(room_message(room, participant_id))

    async def send_file(self, path: str) -> int:
        """로컬 파일을 data URL로 인코딩해 모든 피어에게 전송합니다.

        Raises:
            UnsupportedCapability: 파일 읽기 기능이 없을 때 (상태 변경 없음)
        """
        if self.file_reader is None:
            self.notifier.error("File API is not supported")
            raise UnsupportedCapability("file_reader", "File API is not supported")

        data = await asyncio.to_thread(self.file_reader, path)
        name = Path(path).name
        mime_type = mimetypes.guess_type(name)[0] or ""
        encoded = base64.b64encode(data).decode("ascii")
        data_url = f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"
        logger.info(f"[PeerCall] 파일 전송: {name} ({len(data)} bytes)")
        return self.send_message(file_message(name, len(data), mime_type, data_url))
