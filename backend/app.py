"""PeerCall 제어 서버.

이 모듈은 다자간 통화 클라이언트의 피어 연결 코어(CallClient)를 실행하고,
랑데부 서버와 WebSocket으로 연결하며, 로컬 UI가 사용할 HTTP 제어 API를
제공합니다.

주요 기능:
    - 랑데부 채널 연결 및 signal/참가자 목록 처리
    - 피어 세션 조회, 참가, 퇴장
    - 채팅/파일/닉네임/룸 메시지 브로드캐스트
    - ICE 서버 설정 제공

Architecture:
    - Full mesh: 원격 참가자마다 하나의 aiortc 피어 연결
    - CallClient: 세션 테이블, 룸 라우터, 채팅 로그를 소유
    - RendezvousChannel: 랑데부 서버 WebSocket 어댑터
"""
import logging
import asyncio
from contextlib import asynccontextmanager
import os
from typing import Optional
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from peercall import CallClient, RendezvousChannel
from peercall.config import get_settings
from peercall.webrtc import ice_config
from routes import (
    health_router, peers_router, rooms_router, messages_router,
    init_client, verify_auth_header
)

settings = get_settings()

# 로그 설정
os.makedirs("logs", exist_ok=True)
log_filename = f"logs/peercall_{__import__('datetime').datetime.now().strftime('%Y%m%d')}.log"

LOG_LEVEL = settings.LOG_LEVEL

# 로그 보관 기간 (일) - 기본 60일 (2개월)
LOG_RETENTION_DAYS = settings.LOG_RETENTION_DAYS


def cleanup_old_logs(log_dir: str = "logs", retention_days: int = LOG_RETENTION_DAYS) -> int:
    """오래된 로그 파일을 삭제합니다.

    Args:
        log_dir: 로그 디렉토리 경로
        retention_days: 보관 기간 (일)

    Returns:
        삭제된 파일 수
    """
    import glob
    from datetime import datetime, timedelta

    if not os.path.exists(log_dir):
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for log_file in glob.glob(os.path.join(log_dir, "peercall_*.log")):
        try:
            filename = os.path.basename(log_file)
            date_str = filename.replace("peercall_", "").replace(".log", "")
            file_date = datetime.strptime(date_str, "%Y%m%d")

            if file_date < cutoff_date:
                os.remove(log_file)
                deleted_count += 1
        except (ValueError, OSError):
            continue

    return deleted_count

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),  # 콘솔 출력
        logging.FileHandler(log_filename, encoding="utf-8"),  # 파일 저장
    ]
)
logger = logging.getLogger(__name__)
logger.info(f"로깅 초기화 완료: level={LOG_LEVEL}")


# 글로벌 인스턴스 (lifespan에서 생성)
client: Optional[CallClient] = None
rendezvous: Optional[RendezvousChannel] = None


async def run_rendezvous(channel: RendezvousChannel) -> None:
    """랑데부 채널을 실행합니다. 연결 실패는 로그만 남깁니다."""
    try:
        await channel.run()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"랑데부 채널 오류: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI 앱의 생명주기를 관리하는 컨텍스트 매니저.

    서버 시작 시 CallClient와 랑데부 채널을 만들고, 종료 시 모든 피어
    연결과 랑데부 연결을 정리합니다.

    Args:
        app (FastAPI): FastAPI 애플리케이션 인스턴스

    Yields:
        None: 앱이 실행되는 동안 제어를 반환

    Note:
        - 시작: 로그 정리, CallClient 생성, 랑데부 채널 연결
        - 종료: 랑데부 태스크 취소, 피어 연결 정리, 랑데부 연결 해제
    """
    global client, rendezvous

    logger.info("PeerCall 서버 시작 중...")

    # 오래된 로그 파일 정리 (2개월 이상)
    deleted_logs = cleanup_old_logs()
    if deleted_logs > 0:
        logger.info(f"오래된 로그 파일 {deleted_logs}개 정리 완료 ({LOG_RETENTION_DAYS}일 이상)")

    client = CallClient(
        user_id=settings.USER_ID,
        room=settings.ROOM,
        nickname=settings.NICKNAME,
    )
    init_client(client)

    rendezvous_task: Optional[asyncio.Task] = None
    if settings.RENDEZVOUS_URL:
        rendezvous = RendezvousChannel(settings.RENDEZVOUS_URL, client)
        rendezvous_task = asyncio.create_task(run_rendezvous(rendezvous))
    else:
        logger.warning("RENDEZVOUS_URL 미설정, 랑데부 채널 없이 실행")

    yield

    logger.info("서버 종료 중...")

    if rendezvous_task is not None:
        rendezvous_task.cancel()
        try:
            await rendezvous_task
        except asyncio.CancelledError:
            pass

    # 피어 연결 정리
    client.hang_up()

    if rendezvous is not None:
        await rendezvous.close()
        rendezvous = None

    init_client(None)
    client = None


app = FastAPI(title="PeerCall Control API", lifespan=lifespan)

# CORS - 로컬 UI만 허용
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://(localhost|127\.0\.0\.1):\d+$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(health_router)
app.include_router(peers_router)
app.include_router(rooms_router)
app.include_router(messages_router)


@app.get("/")
async def root():
    """서버 상태 확인 엔드포인트 (Health check).

    Returns:
        dict: 서버 상태 정보를 포함하는 딕셔너리
            - status (str): 서버 상태
            - service (str): 서비스 이름
    """
    return {"status": "ok", "service": "PeerCall Control API"}


@app.get("/api/ice-servers")
async def get_ice_servers(_: bool = Depends(verify_auth_header)):
    """피어 연결에 사용하는 ICE 서버 목록을 반환합니다.

    Returns:
        list: ICE server 설정 리스트 (STUN + 설정된 경우 TURN)

    Environment Variables:
        TURN_SERVER_URL: TURN 서버 URL
        TURN_USERNAME: TURN 사용자명
        TURN_CREDENTIAL: TURN 비밀번호
        STUN_SERVER_URL: STUN 서버 URL (선택)
    """
    ice_servers = []
    for server in ice_config.ice_servers():
        entry = {"urls": server.urls}
        if server.username:
            entry["username"] = server.username
            entry["credential"] = server.credential
        ice_servers.append(entry)

    if ice_config.has_turn_server:
        logger.info("ICE 서버 제공: STUN + TURN")
    else:
        logger.info("ICE 서버 제공: STUN만 (TURN 미설정)")
    return ice_servers


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_level="info")
