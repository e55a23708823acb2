"""Tests for room gain playback."""

from fractions import Fraction

import numpy as np
from av import AudioFrame

from peercall import ME, RoomManager
from peercall.webrtc import RoomGainTrack
from peercall.webrtc.tracks import apply_gain


def make_frame(samples):
    frame = AudioFrame.from_ndarray(np.array([samples], dtype=np.int16), format="s16", layout="mono")
    frame.sample_rate = 48000
    frame.pts = 960
    frame.time_base = Fraction(1, 48000)
    return frame


class StaticTrack:
    def __init__(self, frame):
        self.frame = frame

    async def recv(self):
        return self.frame


def test_apply_gain_scales_samples_and_keeps_timing():
    frame = make_frame([1000, -1000, 32767, -32768])

    scaled = apply_gain(frame, 0.5)

    assert scaled.to_ndarray().tolist() == [[500, -500, 16384, -16384]]
    assert scaled.sample_rate == 48000
    assert scaled.pts == 960
    assert scaled.time_base == Fraction(1, 48000)
    assert scaled.format.name == "s16"


def test_apply_gain_clips_to_sample_range():
    scaled = apply_gain(make_frame([20000, -20000]), 2.0)
    assert scaled.to_ndarray().tolist() == [[32767, -32768]]


async def test_room_gain_track_follows_room_table():
    rooms = RoomManager(local_room="team1")
    frame = make_frame([10000, -10000])
    track = RoomGainTrack(StaticTrack(frame), lambda: rooms.resolve_gain(ME, "peer-b"))

    rooms.set_room("peer-b", "team1")
    assert await track.recv() is frame

    rooms.set_room("peer-b", "team2")
    attenuated = await track.recv()
    assert attenuated.to_ndarray().tolist() == [[100, -100]]
