"""PeerCall 피어 연결 코어 패키지.

다자간 통화 클라이언트에서 원격 참가자마다 하나의 직접 연결을 관리하고,
연결 위로 채팅/파일/닉네임/룸 메시지를 주고받으며, 룸 배정에 따라 오디오
gain을 결정합니다.

Modules:
    webrtc: 트랜스포트, 세션 테이블, 라이프사이클 컨트롤러, gain 트랙
    protocol: 메시지 봉투 코덱 및 self/wire 식별자 변환
    rooms: 룸 배정(룸 라우터)과 닉네임 테이블
    state: 채팅 로그, 알림, 미디어 스트림 상태
    client: 외부 명령과 브로드캐스트를 묶은 CallClient
    rendezvous: 랑데부 서버 WebSocket 어댑터
"""

from .errors import PeerCallError, TransportError, DecodeError, UnsupportedCapability
from .protocol import ME, IdentityTranslator, encode, decode
from .rooms import RoomManager, NicknameTable
from .webrtc import PeerConnectionManager, SessionTable, Transport, AiortcTransport
from .client import CallClient
from .rendezvous import RendezvousChannel

__all__ = [
    # Errors
    "PeerCallError",
    "TransportError",
    "DecodeError",
    "UnsupportedCapability",
    # Protocol
    "ME",
    "IdentityTranslator",
    "encode",
    "decode",
    # Rooms
    "RoomManager",
    "NicknameTable",
    # WebRTC
    "PeerConnectionManager",
    "SessionTable",
    "Transport",
    "AiortcTransport",
    # Client
    "CallClient",
    "RendezvousChannel",
]
