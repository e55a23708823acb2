"""피어 세션 API 라우터.

피어 세션 조회, 참가(joinPeer), 퇴장(leavePeer), 전체 종료(hangUp)
엔드포인트를 제공합니다.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from peercall import CallClient
from .deps import get_client, verify_auth_header

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["peers"], dependencies=[Depends(verify_auth_header)])


class JoinPeerRequest(BaseModel):
    """피어 참가 요청 모델."""
    initiator: Union[bool, str] = Field(
        default=False,
        description="initiator 여부, 또는 양쪽이 합의한 지정 initiator 참가자 ID"
    )


@router.get("/peers")
async def list_peers(client: CallClient = Depends(get_client)):
    """살아있는 피어 세션 목록을 조회합니다.

    Returns:
        dict: 피어 목록
            - peers (list): participant_id, nickname, room, connected
    """
    peers = []
    for participant_id, transport in client.peers.items():
        peers.append({
            "participant_id": participant_id,
            "nickname": client.nicknames.get_nickname(participant_id),
            "room": client.rooms.get_room(participant_id),
            "connected": bool(getattr(transport, "connected", False)),
        })
    return {"peers": peers}


@router.post("/peers/{participant_id}")
async def join_peer(
    participant_id: str,
    request: Optional[JoinPeerRequest] = None,
    client: CallClient = Depends(get_client),
):
    """참가자와 새 세션을 만듭니다. 기존 세션이 있으면 교체됩니다."""
    if client.identity.is_self(participant_id):
        raise HTTPException(status_code=400, detail="Cannot connect to self")
    initiator = request.initiator if request is not None else False
    session = client.join_peer(participant_id, initiator)
    return {"participant_id": session.participant_id, "created_at": session.created_at}


@router.delete("/peers/{participant_id}")
async def leave_peer(participant_id: str, client: CallClient = Depends(get_client)):
    """참가자와의 세션을 종료합니다."""
    if not client.leave_peer(participant_id):
        raise HTTPException(status_code=404, detail="Peer not found")
    return {"participant_id": participant_id, "closed": True}


@router.post("/hang-up")
async def hang_up(client: CallClient = Depends(get_client)):
    """모든 피어 세션을 종료합니다."""
    count = len(client.sessions)
    client.hang_up()
    logger.info(f"[API] 전체 종료 요청: {count}개 세션")
    return {"closed": count}
