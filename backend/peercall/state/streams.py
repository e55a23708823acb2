"""미디어 스트림 상태 모듈.

참가자별로 수신(또는 로컬 획득)한 미디어 스트림과 트랙을 추적합니다.
원격 트랙의 mute는 파괴가 아니라 "트랙 제거"로, unmute는 "트랙 추가"로
모델링됩니다. 원격이 같은 트랙을 다시 unmute할 수 있기 때문입니다.

Classes:
    MediaStream: 트랙 묶음 (브라우저 MediaStream 대응)
    StreamRegistry: 참가자 ID → 스트림 목록
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MediaStream:
    """같은 출처의 미디어 트랙 묶음.

    aiortc에는 MediaStream 객체가 없으므로 트랙 목록을 직접 보관합니다.
    동일성은 객체 identity로 판단합니다.

    Attributes:
        id (str): 스트림 ID
        tracks (List[Any]): aiortc MediaStreamTrack 목록
    """
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tracks: List[Any] = field(default_factory=list)

    def get_tracks(self) -> List[Any]:
        return list(self.tracks)

    def add_track(self, track: Any) -> None:
        if track not in self.tracks:
            self.tracks.append(track)

    def remove_track(self, track: Any) -> None:
        if track in self.tracks:
            self.tracks.remove(track)


class StreamRegistry:
    """참가자별 미디어 스트림 상태.

    모든 등록 작업은 멱등입니다. 같은 스트림을 여러 번 추가해도 한 번만
    기록됩니다.

    Attributes:
        streams (Dict[str, List[MediaStream]]): self 표기의 참가자 ID → 스트림 목록
    """

    def __init__(self):
        self.streams: Dict[str, List[MediaStream]] = {}

    def add_stream(self, user_id: str, stream: MediaStream) -> None:
        user_streams = self.streams.setdefault(user_id, [])
        if stream not in user_streams:
            user_streams.append(stream)
            logger.info(f"[Stream] 참가자 {user_id[:8]} 스트림 추가: {stream.id[:8]}")

    def remove_stream(self, user_id: str, stream: MediaStream) -> None:
        user_streams = self.streams.get(user_id)
        if not user_streams or stream not in user_streams:
            return
        user_streams.remove(stream)
        if not user_streams:
            del self.streams[user_id]
        logger.info(f"[Stream] 참가자 {user_id[:8]} 스트림 제거: {stream.id[:8]}")

    def add_track(self, user_id: str, stream: MediaStream, track: Any) -> None:
        self.add_stream(user_id, stream)
        stream.add_track(track)
        logger.debug(f"[Stream] 참가자 {user_id[:8]} 트랙 추가: {getattr(track, 'kind', '?')}")

    def remove_track(self, user_id: str, stream: MediaStream, track: Any) -> None:
        stream.remove_track(track)
        logger.debug(f"[Stream] 참가자 {user_id[:8]} 트랙 제거: {getattr(track, 'kind', '?')}")

    def remove_user(self, user_id: str) -> List[MediaStream]:
        """참가자의 모든 스트림을 제거하고 제거된 스트림을 반환합니다."""
        removed = list(self.streams.get(user_id, []))
        for stream in removed:
            self.remove_stream(user_id, stream)
        return removed

    def get_streams(self, user_id: str) -> List[MediaStream]:
        return list(self.streams.get(user_id, []))

