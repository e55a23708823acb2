"""참가자 닉네임 테이블."""

import logging
from typing import Dict, Optional

from ..protocol.identity import ME

logger = logging.getLogger(__name__)


class NicknameTable:
    """참가자 ID → 표시 이름 매핑.

    닉네임이 없거나 비어 있으면 참가자 ID 자체를 표시 이름으로 사용합니다.

    Attributes:
        nicknames (Dict[str, str]): self 표기의 참가자 ID → 닉네임
    """

    def __init__(self, local_nickname: Optional[str] = None):
        self.nicknames: Dict[str, str] = {}
        if local_nickname:
            self.nicknames[ME] = local_nickname

    def set_nickname(self, participant_id: str, nickname: Optional[str]) -> None:
        if nickname:
            self.nicknames[participant_id] = nickname
        else:
            self.nicknames.pop(participant_id, None)
        logger.info(f"[Room] 참가자 {participant_id[:8]} 닉네임: {nickname or participant_id}")

    def get(self, participant_id: str) -> Optional[str]:
        """저장된 닉네임을 반환합니다. 없으면 None."""
        return self.nicknames.get(participant_id)

    def get_nickname(self, participant_id: str) -> str:
        """표시 이름을 반환합니다. 없으면 참가자 ID."""
        return self.nicknames.get(participant_id) or participant_id
