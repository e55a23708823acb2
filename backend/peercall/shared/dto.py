"""Lightweight shared DTOs exposed to the UI/state layer."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """채팅 로그 한 줄 (사용자에게 보여야 하는 프로토콜 이벤트 1건)."""

    user_id: str = Field(description="메시지 작성자 참가자 ID (로컬은 self sentinel)")
    message: str = Field(default="", description="표시할 본문")
    timestamp: datetime = Field(default_factory=datetime.now, description="로컬 수신 시각")
    system: bool = Field(default=False, description="시스템 메시지 여부")
    image: Optional[str] = Field(default=None, description="파일 전송 시 data URL")


class Notification(BaseModel):
    """사용자 알림 채널로 전달되는 알림."""

    level: Literal["info", "warning", "error"] = Field(description="알림 수준")
    message: str = Field(description="알림 본문")


class RoomInfo(BaseModel):
    """룸 목록 화면용 룸 요약."""

    room_name: str = Field(description="룸 이름 (미지정 참가자는 기본 룸)")
    peer_count: int = Field(default=0, description="룸의 참가자 수")
    participants: List[str] = Field(default_factory=list, description="룸의 참가자 ID 목록")
