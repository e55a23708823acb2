"""공유 의존성 모듈.

라우터들이 공통으로 사용하는 의존성을 정의합니다.
"""

import logging
from typing import Optional, TYPE_CHECKING

from fastapi import Header, HTTPException

from peercall.config import get_settings

if TYPE_CHECKING:
    from peercall import CallClient

logger = logging.getLogger(__name__)

# 글로벌 클라이언트 참조 (app.py에서 설정됨)
_client: Optional["CallClient"] = None


def init_client(client: Optional["CallClient"]) -> None:
    """CallClient 인스턴스를 설정합니다.

    app.py의 lifespan에서 호출하여 라우터들이 사용할 클라이언트를 지정합니다.
    """
    global _client
    _client = client
    logger.info("제어 API 클라이언트 초기화 완료")


def get_client() -> "CallClient":
    """현재 CallClient를 반환합니다.

    Raises:
        HTTPException: 클라이언트가 아직 초기화되지 않았을 때 (503)
    """
    if _client is None:
        raise HTTPException(status_code=503, detail="Call client not initialized")
    return _client


async def verify_auth_header(authorization: Optional[str] = Header(None)) -> bool:
    """Authorization 헤더를 검증합니다.

    Args:
        authorization: Authorization 헤더 값

    Returns:
        bool: 검증 성공 시 True

    Raises:
        HTTPException: 인증 실패 시
    """
    password = get_settings().ACCESS_PASSWORD
    if not password:
        return True
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization format")
    if parts[1] != password:
        raise HTTPException(status_code=401, detail="Invalid password")
    return True
