"""WebRTC 모듈.

피어 세션 테이블, 라이프사이클 관리, 트랜스포트, 룸 gain 재생 트랙을 제공합니다.

Classes:
    PeerConnectionManager: 피어 세션 생성/교체/종료
    PeerHandler: 세션별 이벤트 상태 머신
    SessionTable: 참가자 ID → 세션 테이블
    PeerSession: 세션 데이터 클래스
    Transport: 트랜스포트 계약
    AiortcTransport: aiortc 기반 트랜스포트
    RoomGainTrack: 룸 gain 적용 오디오 트랙

Config:
    ice_config: ICE 서버 설정
    connection_config: WebRTC 연결 및 룸 라우팅 설정
"""

from .tracks import RoomGainTrack
from .session_table import PeerSession, SessionTable
from .transport import Transport, AiortcTransport, TransportFactory
from .peer_manager import PeerConnectionManager, PeerHandler, SessionState
from .config import (
    ice_config,
    connection_config,
    ICEServerConfig,
    ConnectionConfig,
)

__all__ = [
    # Classes
    "RoomGainTrack",
    "PeerSession",
    "SessionTable",
    "Transport",
    "AiortcTransport",
    "TransportFactory",
    "PeerConnectionManager",
    "PeerHandler",
    "SessionState",
    # Config
    "ice_config",
    "connection_config",
    "ICEServerConfig",
    "ConnectionConfig",
]
