"""룸 배정 및 오디오 라우팅 모듈.

이 모듈은 통화 참가자(로컬 + 원격)의 룸 배정 테이블을 관리하고,
룸 공유 여부로 참가자별 재생 볼륨(gain)을 계산합니다. 룸은 네트워크 개념이
아니라 오디오를 나누기 위한 논리적 그룹입니다.

주요 기능:
    - 참가자 → 룸 배정 (upsert, 이름 검증 없음)
    - 룸 미지정 참가자는 기본 룸으로 해석
    - 같은 룸이면 전체 볼륨, 다른 룸이면 거의 무음(0이 아님)
    - 피어 세션 파괴 시 배정 제거
    - 룸별 참가자 목록 조회

Architecture:
    - assignments: Dict[str, Optional[str]] - 참가자 ID → 룸 이름
    - 로컬 참가자는 self sentinel(ME) 키로 저장

Classes:
    RoomManager: 룸 배정 및 gain 계산 클래스

Examples:
    기본 사용법:
        >>> manager = RoomManager()
        >>> manager.set_room(ME, "team1")
        >>> manager.set_room("peer-123", "team1")
        >>> manager.resolve_gain(ME, "peer-123")
        1.0

See Also:
    webrtc/peer_manager.py: 세션 파괴 시 remove_participant() 호출
    webrtc/tracks.py: resolve_gain()을 사용하는 재생 트랙
"""
import logging
from typing import Dict, List, Optional

from ..protocol.identity import ME
from ..shared.dto import RoomInfo
from ..webrtc.config import connection_config

logger = logging.getLogger(__name__)


class RoomManager:
    """참가자 룸 배정 테이블을 관리하는 핵심 클래스.

    모든 변경은 이벤트 핸들러가 실행되는 단일 스레드에서만 일어나므로
    별도의 동기화가 필요 없습니다. gain은 캐시 없이 호출할 때마다 테이블에서
    다시 계산됩니다.

    Attributes:
        assignments (Dict[str, Optional[str]]): 참가자 ID → 룸 이름
        default_room (str): 룸 미지정 참가자가 속하는 룸
        full_gain (float): 같은 룸일 때 볼륨
        attenuated_gain (float): 다른 룸일 때 볼륨

    Thread Safety:
        - asyncio 환경에서 단일 스레드로 동작
        - 멀티 스레드 환경에서는 추가 동기화 필요

    Examples:
        >>> manager = RoomManager(local_room="team1")
        >>> manager.set_room("peer-456", "team2")
        >>> manager.resolve_gain(ME, "peer-456")
        0.01
        >>> manager.get_room("peer-789")
        'main'
    """

    def __init__(
        self,
        local_room: Optional[str] = None,
        default_room: str = connection_config.DEFAULT_ROOM,
        full_gain: float = connection_config.FULL_GAIN,
        attenuated_gain: float = connection_config.ATTENUATED_GAIN,
    ):
        """RoomManager 초기화.

        Args:
            local_room (Optional[str]): 로컬 참가자의 초기 룸 (None이면 미지정)
            default_room (str): 기본 룸 이름
            full_gain (float): 같은 룸 볼륨
            attenuated_gain (float): 다른 룸 볼륨
        """
        # participant_id -> room_name
        self.assignments: Dict[str, Optional[str]] = {ME: local_room}
        self.default_room = default_room
        self.full_gain = full_gain
        self.attenuated_gain = attenuated_gain

    def set_room(self, participant_id: str, room: Optional[str]) -> None:
        """참가자의 룸을 설정합니다.

        룸 이름 문법은 검증하지 않습니다. 빈 문자열과 None도 허용되며
        라우팅 시 기본 룸으로 해석됩니다. 같은 참가자에 대한 충돌하는 설정은
        도착 순서대로 마지막 값이 유지됩니다.

        Args:
            participant_id (str): self 표기의 참가자 ID
            room (Optional[str]): 룸 이름
        """
        previous = self.assignments.get(participant_id)
        self.assignments[participant_id] = room
        logger.info(
            f"[Room] 참가자 {participant_id[:8]} 룸 변경: "
            f"'{previous or self.default_room}' -> '{room or self.default_room}'"
        )

    def get_room(self, participant_id: str) -> str:
        """참가자의 룸을 반환합니다. 미지정이면 기본 룸입니다."""
        room = self.assignments.get(participant_id)
        if room:
            return room
        return self.default_room

    def has_room(self, participant_id: str) -> bool:
        """참가자에게 명시적으로 배정된 룸이 있는지 확인합니다."""
        return bool(self.assignments.get(participant_id))

    def resolve_gain(self, local_participant_id: str, other_participant_id: str) -> float:
        """두 참가자 사이의 재생 볼륨을 계산합니다.

        Args:
            local_participant_id (str): 기준 참가자 (보통 ME)
            other_participant_id (str): 상대 참가자

        Returns:
            float: 같은 룸이면 full_gain, 아니면 attenuated_gain.
                   인자 순서와 무관하게 같은 값을 반환합니다.
        """
        if self.get_room(local_participant_id) == self.get_room(other_participant_id):
            return self.full_gain
        return self.attenuated_gain

    def remove_participant(self, participant_id: str) -> Optional[str]:
        """참가자의 룸 배정을 제거합니다.

        피어 세션이 파괴될 때 호출됩니다. 로컬 참가자는 제거하지 않습니다.

        Returns:
            Optional[str]: 제거된 룸 이름. 배정이 없었으면 None
        """
        if participant_id == ME or participant_id not in self.assignments:
            return None
        room = self.assignments.pop(participant_id)
        logger.info(f"[Room] 참가자 {participant_id[:8]} 룸 배정 제거 (룸: {room or self.default_room})")
        return room

    def get_room_peers(self, room_name: str) -> List[str]:
        """특정 룸으로 해석되는 참가자 ID 목록을 반환합니다."""
        return [pid for pid in self.assignments if self.get_room(pid) == room_name]

    def get_room_list(self) -> List[RoomInfo]:
        """모든 룸의 정보를 리스트로 반환합니다.

        룸 목록 UI에서 사용됩니다. 기본 룸은 비어 있어도 항상 포함됩니다.

        Returns:
            List[RoomInfo]: 룸 이름 순으로 정렬된 룸 요약

        Examples:
            >>> manager = RoomManager()
            >>> manager.set_room("peer-123", "team1")
            >>> [(r.room_name, r.peer_count) for r in manager.get_room_list()]
            [('main', 1), ('team1', 1)]
        """
        grouped: Dict[str, List[str]] = {self.default_room: []}
        for participant_id in self.assignments:
            grouped.setdefault(self.get_room(participant_id), []).append(participant_id)
        return [
            RoomInfo(room_name=name, peer_count=len(members), participants=members)
            for name, members in sorted(grouped.items())
        ]
