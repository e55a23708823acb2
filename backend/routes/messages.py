"""채팅/파일 API 라우터.

채팅 로그와 사용자 알림 조회, 텍스트 메시지 전송, 로컬 파일 전송 엔드포인트를
제공합니다.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from peercall import CallClient, UnsupportedCapability
from .deps import get_client, verify_auth_header

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["messages"], dependencies=[Depends(verify_auth_header)])


class TextRequest(BaseModel):
    """텍스트 메시지 전송 요청 모델."""
    message: str = Field(description="전송할 본문")


class FileRequest(BaseModel):
    """파일 전송 요청 모델."""
    path: str = Field(description="전송할 로컬 파일 경로")


@router.get("/messages")
async def get_messages(client: CallClient = Depends(get_client)):
    """채팅 로그를 추가된 순서대로 조회합니다."""
    return {"messages": [m.model_dump(mode="json") for m in client.messages]}


@router.post("/messages")
async def send_text(request: TextRequest, client: CallClient = Depends(get_client)):
    """텍스트 메시지를 모든 피어에게 전송합니다.

    Returns:
        dict: sent (int) 전송에 성공한 피어 수
    """
    return {"sent": client.send_text(request.message)}


@router.post("/files")
async def send_file(request: FileRequest, client: CallClient = Depends(get_client)):
    """로컬 파일을 모든 피어에게 전송합니다.

    Raises:
        HTTPException: 파일 읽기 미지원(501), 파일 없음(404), 읽기 실패(400)
    """
    try:
        sent = await client.send_file(request.path)
    except UnsupportedCapability as e:
        raise HTTPException(status_code=501, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except OSError as e:
        logger.error(f"[API] 파일 읽기 실패: {e}")
        raise HTTPException(status_code=400, detail="Failed to read file")
    return {"sent": sent}


@router.get("/notifications")
async def get_notifications(client: CallClient = Depends(get_client)):
    """연결 시작/성립/종료/오류 등 사용자 알림을 발생 순서대로 조회합니다."""
    return {"notifications": [n.model_dump(mode="json") for n in client.notifications]}
