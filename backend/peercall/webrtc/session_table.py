"""피어 세션 테이블 모듈.

참가자 ID → 살아있는 트랜스포트 매핑을 소유합니다. 한 참가자에 대해
살아있는 세션은 언제나 최대 하나입니다.
"""

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PeerSession:
    """참가자 한 명과의 살아있는 연결.

    Attributes:
        participant_id (str): 원격 참가자 ID
        transport (Transport): 해당 참가자와의 트랜스포트
        created_at (float): 생성 시각 (epoch seconds)
    """
    participant_id: str
    transport: Transport
    created_at: float = field(default_factory=time.time)


class SessionTable:
    """참가자 ID → PeerSession 테이블.

    새 세션을 추가하기 전에 기존 세션을 제거하는 것은 호출자(라이프사이클
    컨트롤러)의 책임이며, 테이블은 이를 어기는 추가를 거부합니다.
    """

    def __init__(self):
        self._sessions: Dict[str, PeerSession] = {}

    def add(self, session: PeerSession) -> None:
        """세션을 등록합니다.

        Raises:
            ValueError: 같은 참가자의 살아있는 세션이 이미 있을 때
        """
        if session.participant_id in self._sessions:
            raise ValueError(f"live session already exists for {session.participant_id}")
        self._sessions[session.participant_id] = session
        logger.info(f"[WebRTC] 세션 등록: {session.participant_id[:8]} (총 {len(self._sessions)}개)")

    def get(self, participant_id: str) -> Optional[PeerSession]:
        return self._sessions.get(participant_id)

    def is_current(self, session: PeerSession) -> bool:
        """주어진 세션이 해당 참가자의 현재 세션인지 확인합니다."""
        return self._sessions.get(session.participant_id) is session

    def remove(self, participant_id: str, session: Optional[PeerSession] = None) -> Optional[PeerSession]:
        """세션을 제거합니다. 여러 번 호출해도 안전합니다.

        Args:
            participant_id (str): 제거할 참가자 ID
            session (Optional[PeerSession]): 주어지면 현재 세션과 같을 때만 제거

        Returns:
            Optional[PeerSession]: 제거된 세션. 제거하지 않았으면 None
        """
        current = self._sessions.get(participant_id)
        if current is None or (session is not None and current is not session):
            return None
        del self._sessions[participant_id]
        logger.info(f"[WebRTC] 세션 제거: {participant_id[:8]} (남은 {len(self._sessions)}개)")
        return current

    def transports(self) -> Mapping[str, Transport]:
        """참가자 ID → 트랜스포트의 읽기 전용 뷰."""
        return MappingProxyType({pid: s.transport for pid, s in self._sessions.items()})

    def sessions(self) -> List[PeerSession]:
        return list(self._sessions.values())

    def __contains__(self, participant_id: str) -> bool:
        return participant_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))
