"""룸 기반 오디오 재생 트랙 모듈.

원격 참가자의 오디오 트랙을 감싸서, 로컬 참가자와 같은 룸인지에 따라
프레임 볼륨을 조절합니다. gain은 프레임마다 룸 테이블에서 다시 계산됩니다.
재생 계층은 CallClient.playback_track()으로 원격 오디오 트랙마다 하나씩 만듭니다.
"""

import logging
from typing import Callable

import numpy as np
from aiortc import MediaStreamTrack
from av import AudioFrame

logger = logging.getLogger(__name__)


class RoomGainTrack(MediaStreamTrack):
    """원격 오디오 프레임에 룸 gain을 적용하는 트랙.

    Attributes:
        kind (str): 트랙 종류 ("audio")
        track (MediaStreamTrack): 원본 원격 오디오 트랙
        gain (Callable[[], float]): 현재 gain을 반환하는 함수

    Note:
        - gain이 1.0이면 원본 프레임을 그대로 반환
        - 샘플 포맷/레이아웃/타임스탬프는 원본과 동일하게 유지

    Examples:
        >>> gain = lambda: rooms.resolve_gain(ME, "peer-456")
        >>> playback = RoomGainTrack(remote_audio_track, gain)
        >>> frame = await playback.recv()
    """
    kind = "audio"

    def __init__(self, track: MediaStreamTrack, gain: Callable[[], float]):
        """RoomGainTrack 초기화.

        Args:
            track (MediaStreamTrack): 원격 오디오 트랙
            gain (Callable[[], float]): 현재 gain 계산 함수
        """
        super().__init__()
        self.track = track
        self.gain = gain
        self._last_gain = None

    async def recv(self):
        """오디오 프레임을 수신하고 gain을 적용합니다.

        Returns:
            AudioFrame: gain이 적용된 오디오 프레임
        """
        frame = await self.track.recv()
        gain = self.gain()

        if gain != self._last_gain:
            logger.info(f"[WebRTC] 재생 gain 변경: {self._last_gain} -> {gain}")
            self._last_gain = gain

        if gain == 1.0:
            return frame
        return apply_gain(frame, gain)


def apply_gain(frame: AudioFrame, gain: float) -> AudioFrame:
    """오디오 프레임 샘플에 gain을 곱한 새 프레임을 반환합니다."""
    samples = frame.to_ndarray()
    if np.issubdtype(samples.dtype, np.integer):
        info = np.iinfo(samples.dtype)
        scaled = np.clip(np.rint(samples.astype(np.float32) * gain), info.min, info.max).astype(samples.dtype)
    else:
        scaled = (samples * gain).astype(samples.dtype)

    new_frame = AudioFrame.from_ndarray(scaled, format=frame.format.name, layout=frame.layout.name)
    new_frame.sample_rate = frame.sample_rate
    new_frame.pts = frame.pts
    new_frame.time_base = frame.time_base
    return new_frame
