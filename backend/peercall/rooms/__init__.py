"""룸 배정과 닉네임 테이블.

Classes:
    RoomManager: 참가자 룸 배정 및 오디오 gain 계산
    NicknameTable: 참가자 표시 이름 관리
"""

from .room_manager import RoomManager
from .nicknames import NicknameTable

__all__ = [
    "RoomManager",
    "NicknameTable",
]
