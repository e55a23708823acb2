"""PeerCall 클라이언트 설정.

랑데부 서버 주소, 로컬 참가자 정보(ID, 룸, 닉네임), 로깅 설정을
환경변수에서 로드합니다.
"""

import logging
from typing import Optional
from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# .env 파일 로드
_env_path = Path(__file__).parent.parent / "config" / ".env"
load_dotenv(_env_path)


class PeerCallSettings(BaseSettings):
    """PeerCall 클라이언트 설정 클래스.

    환경 변수를 Python 객체로 매핑하고 유효성을 검증합니다.
    """

    # 랑데부(시그널링) 서버
    RENDEZVOUS_URL: Optional[str] = Field(
        default=None,
        description="랑데부 채널 WebSocket URL (없으면 랑데부 채널 없이 실행)"
    )

    # 로컬 참가자
    USER_ID: Optional[str] = Field(
        default=None,
        description="서버가 발급한 로컬 참가자 ID (없으면 랑데부 서버에서 수신)"
    )

    ROOM: Optional[str] = Field(
        default=None,
        description="로컬 참가자의 초기 룸 (없으면 기본 룸)"
    )

    NICKNAME: Optional[str] = Field(
        default=None,
        description="로컬 참가자의 초기 닉네임"
    )

    # HTTP 제어 API
    API_HOST: str = Field(default="127.0.0.1", description="제어 API 바인드 주소")
    API_PORT: int = Field(default=8000, description="제어 API 포트")
    ACCESS_PASSWORD: str = Field(
        default="",
        description="제어 API Bearer 비밀번호 (비어 있으면 인증 없음)"
    )

    # 로깅 설정
    LOG_LEVEL: str = Field(
        default="INFO",
        description="로그 레벨"
    )

    LOG_RETENTION_DAYS: int = Field(
        default=60,
        description="로그 파일 보관 기간 (일)"
    )

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 유효성 검증"""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL은 {allowed} 중 하나여야 합니다.")
        return v.upper()

    class Config:
        """Pydantic 설정"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> PeerCallSettings:
    """설정 싱글톤 인스턴스 반환.

    Returns:
        PeerCallSettings: 설정 객체
    """
    settings = PeerCallSettings()
    logger.info(f"[PeerCall Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
    logger.info(f"[PeerCall Config] 랑데부 URL: {settings.RENDEZVOUS_URL}")
    return settings
