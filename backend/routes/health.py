"""Health Check API 라우터.

서비스 상태 확인을 위한 엔드포인트를 제공합니다.
"""

from fastapi import APIRouter

from . import deps

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """클라이언트와 랑데부 채널 상태를 확인합니다.

    Returns:
        dict: 서비스 상태 정보
            - status (str): "ok" 또는 "not_initialized"
            - user_id (Optional[str]): 로컬 참가자 ID
            - peers (int): 살아있는 피어 세션 수
    """
    client = deps._client
    if client is None:
        return {"status": "not_initialized", "user_id": None, "peers": 0}
    return {
        "status": "ok",
        "user_id": client.user_id,
        "peers": len(client.sessions),
    }
