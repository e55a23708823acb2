"""WebRTC 모듈 설정.

TURN/STUN 서버, ICE 설정, 룸 오디오 라우팅 등 WebRTC 관련 상수와
환경변수 기반 설정.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, List

from aiortc import RTCConfiguration, RTCIceServer
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


# ============================================================
# ICE Server 설정
# ============================================================

@dataclass(frozen=True)
class ICEServerConfig:
    """ICE 서버 설정."""

    # TURN 서버
    TURN_SERVER_URL: Optional[str] = os.getenv("TURN_SERVER_URL")
    TURN_USERNAME: Optional[str] = os.getenv("TURN_USERNAME")
    TURN_CREDENTIAL: Optional[str] = os.getenv("TURN_CREDENTIAL")

    # STUN 서버
    STUN_SERVER_URL: Optional[str] = os.getenv("STUN_SERVER_URL")

    # 기본 공개 STUN 서버 (fallback)
    DEFAULT_STUN_SERVERS: tuple = (
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    )

    @property
    def has_turn_server(self) -> bool:
        """TURN 서버 설정 완료 여부."""
        return all([self.TURN_SERVER_URL, self.TURN_USERNAME, self.TURN_CREDENTIAL])

    def ice_servers(self) -> List[RTCIceServer]:
        """설정된 STUN/TURN 서버 목록을 반환합니다.

        STUN_SERVER_URL이 있으면 우선 사용하고, 공개 STUN 서버를 백업으로 붙입니다.
        DEFAULT_STUN_SERVERS가 비어 있으면 호스트 후보만 사용합니다 (로컬 루프백).
        TURN 자격 증명이 모두 있을 때만 TURN 서버를 추가합니다.
        """
        servers = []
        if self.STUN_SERVER_URL:
            servers.append(RTCIceServer(urls=[self.STUN_SERVER_URL]))
        if self.DEFAULT_STUN_SERVERS:
            servers.append(RTCIceServer(urls=list(self.DEFAULT_STUN_SERVERS)))
        if self.has_turn_server:
            servers.append(RTCIceServer(
                urls=[self.TURN_SERVER_URL],
                username=self.TURN_USERNAME,
                credential=self.TURN_CREDENTIAL,
            ))
        return servers

    def to_rtc_configuration(self) -> RTCConfiguration:
        """aiortc RTCConfiguration 객체로 변환합니다."""
        return RTCConfiguration(iceServers=self.ice_servers())


# ============================================================
# WebRTC 연결 설정
# ============================================================

@dataclass(frozen=True)
class ConnectionConfig:
    """WebRTC 연결 및 룸 라우팅 관련 설정."""

    # 데이터 채널 라벨
    DATA_CHANNEL_LABEL: str = "peercall"

    # 룸 미지정 참가자가 속하는 기본 룸
    DEFAULT_ROOM: str = "main"

    # 같은 룸일 때 재생 볼륨
    FULL_GAIN: float = 1.0

    # 다른 룸일 때 재생 볼륨 (0이 아니어야 함)
    ATTENUATED_GAIN: float = 0.01


# ============================================================
# 싱글톤 인스턴스
# ============================================================

ice_config = ICEServerConfig()
connection_config = ConnectionConfig()


# ============================================================
# 설정 로드 확인 로그
# ============================================================

logger.info(f"[WebRTC Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.info(f"[WebRTC Config] TURN 서버 설정 완료: {ice_config.has_turn_server}")
if ice_config.STUN_SERVER_URL:
    logger.info(f"[WebRTC Config] STUN URL: {ice_config.STUN_SERVER_URL}")
else:
    logger.info("[WebRTC Config] STUN URL: 기본 Google STUN 사용")
