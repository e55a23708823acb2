"""FastAPI 라우터 모듈.

CallClient의 읽기 전용 뷰와 명령을 HTTP로 노출하는 엔드포인트들을 제공합니다.
"""

from .health import router as health_router
from .peers import router as peers_router
from .rooms import router as rooms_router
from .messages import router as messages_router
from .deps import init_client, get_client, verify_auth_header

__all__ = [
    "health_router",
    "peers_router",
    "rooms_router",
    "messages_router",
    "init_client",
    "get_client",
    "verify_auth_header",
]
