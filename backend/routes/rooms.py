"""룸/닉네임 API 라우터.

룸 목록과 닉네임 조회, 로컬 룸/닉네임 변경, 다른 참가자의 룸 이동
엔드포인트를 제공합니다. 변경은 모두 피어들에게 브로드캐스트됩니다.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from peercall import ME, CallClient
from .deps import get_client, verify_auth_header

router = APIRouter(prefix="/api", tags=["rooms"], dependencies=[Depends(verify_auth_header)])


class RoomRequest(BaseModel):
    """룸 변경 요청 모델."""
    room: Optional[str] = Field(default=None, description="새 룸 이름 (비우면 기본 룸)")


class NicknameRequest(BaseModel):
    """닉네임 변경 요청 모델."""
    nickname: str = Field(description="새 닉네임")


@router.get("/rooms")
async def get_rooms(client: CallClient = Depends(get_client)):
    """룸별 참가자 목록을 조회합니다.

    Returns:
        dict: 룸 목록
            - rooms (list): room_name, peer_count, participants (기본 룸은 항상 포함)
            - local_room (str): 로컬 참가자의 룸
    """
    return {
        "rooms": [room.model_dump() for room in client.rooms.get_room_list()],
        "local_room": client.rooms.get_room(ME),
    }


@router.put("/room")
async def set_local_room(request: RoomRequest, client: CallClient = Depends(get_client)):
    """로컬 참가자의 룸을 바꾸고 모든 피어에게 알립니다."""
    sent = client.set_local_room(request.room)
    return {"room": client.rooms.get_room(ME), "sent": sent}


@router.put("/rooms/{participant_id}")
async def set_participant_room(
    participant_id: str,
    request: RoomRequest,
    client: CallClient = Depends(get_client),
):
    """다른 참가자를 룸으로 옮기고 모든 피어에게 알립니다."""
    if participant_id not in client.sessions and not client.identity.is_self(participant_id):
        raise HTTPException(status_code=404, detail="Peer not found")
    sent = client.set_room(participant_id, request.room)
    return {"participant_id": participant_id, "room": request.room, "sent": sent}


@router.get("/nicknames")
async def get_nicknames(client: CallClient = Depends(get_client)):
    """참가자 ID → 닉네임 매핑을 조회합니다."""
    return {"nicknames": dict(client.nickname_map)}


@router.put("/nickname")
async def set_local_nickname(request: NicknameRequest, client: CallClient = Depends(get_client)):
    """로컬 닉네임을 바꾸고 모든 피어에게 알립니다."""
    sent = client.set_local_nickname(request.nickname)
    return {"nickname": request.nickname, "sent": sent}
