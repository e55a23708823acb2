"""피어 트랜스포트 모듈.

원격 참가자 한 명당 하나씩 생성되는 직접 연결(트랜스포트)의 계약과
aiortc 기반 구현을 제공합니다. 컨트롤러는 트랜스포트를 이벤트를 내보내는
불투명한 객체로만 다루며, ICE/SDP 세부 사항은 이 모듈 안에 숨겨집니다.

Events:
    - signal(payload): 랑데부 채널로 전달해야 하는 협상 payload (여러 번 발생)
    - connect(): 데이터 채널이 열림 (최대 1회)
    - track(track, stream): 원격 미디어 트랙 수신
    - data(bytes): 데이터 채널 메시지 수신
    - close(): 연결 종료 (최대 1회)
    - error(err): 복구 불가능한 오류 (TransportError)

Operations:
    - signal(payload): 상대가 보낸 협상 payload 입력
    - send(data): 데이터 채널로 전송
    - add_track(track, stream): 로컬 트랙 추가 (연결 후면 재협상)
    - destroy(): 연결 종료

Signal Payloads:
    - {"type": "offer" | "answer", "sdp": "..."}: 전체 SDP (aiortc는 trickle ICE 없음)
    - {"type": "renegotiate", "renegotiate": true}: 비-initiator의 재협상 요청
    - {"candidate": {"candidate", "sdpMid", "sdpMLineIndex"}}: 원격 ICE candidate

See Also:
    webrtc/peer_manager.py: 이벤트 핸들러 등록 및 세션 수명 관리
    aiortc Documentation: https://aiortc.readthedocs.io/
"""
import asyncio
import logging
from typing import Any, Callable, Optional, Set, Union

from aiortc import RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp
from pyee import EventEmitter

from ..errors import TransportError
from ..state.streams import MediaStream
from .config import ICEServerConfig, connection_config, ice_config as default_ice_config

logger = logging.getLogger(__name__)

EVENT_SIGNAL = "signal"
EVENT_CONNECT = "connect"
EVENT_TRACK = "track"
EVENT_DATA = "data"
EVENT_CLOSE = "close"
EVENT_ERROR = "error"

MEDIA_KINDS = ("audio", "video")


class Transport(EventEmitter):
    """원격 참가자 한 명과의 직접 연결 계약.

    구현체는 위 이벤트를 내보내고 아래 연산을 제공해야 합니다.
    모든 연산은 fire-and-forget이며 호출자는 완료를 기다리지 않습니다.
    """

    def signal(self, payload: dict) -> None:
        raise NotImplementedError

    def send(self, data: Union[bytes, str]) -> None:
        raise NotImplementedError

    def add_track(self, track: Any, stream: MediaStream) -> None:
        raise NotImplementedError

    def destroy(self) -> None:
        raise NotImplementedError


TransportFactory = Callable[[bool, ICEServerConfig, Optional[MediaStream]], Transport]


class AiortcTransport(Transport):
    """aiortc RTCPeerConnection 기반 트랜스포트.

    initiator는 비순서(unordered) 데이터 채널과 offer를 만들고,
    비-initiator는 offer를 받아 answer를 만듭니다. aiortc의
    setLocalDescription()은 ICE gathering이 끝날 때까지 기다리므로
    signal 이벤트에는 candidate가 모두 포함된 SDP가 실립니다.

    Attributes:
        initiator (bool): offer를 먼저 만드는 쪽인지 여부
        pc (RTCPeerConnection): aiortc 피어 연결
        channel: 애플리케이션 메시지용 RTCDataChannel
        remote_stream (MediaStream): 수신 트랙을 묶는 원격 스트림
        connected (bool): connect 이벤트 발생 여부
        destroyed (bool): destroy() 호출 여부

    Examples:
        >>> transport = AiortcTransport(initiator=True, ice_config=ice_config)
        >>> transport.on("signal", lambda payload: rendezvous.emit_signal("peer-456", payload))
        >>> transport.on("data", lambda data: print(data))
    """

    def __init__(
        self,
        initiator: bool,
        ice_config: ICEServerConfig = default_ice_config,
        stream: Optional[MediaStream] = None,
    ):
        super().__init__()
        self.initiator = initiator
        self.pc = RTCPeerConnection(configuration=ice_config.to_rtc_configuration())
        self.channel = None
        self.remote_stream = MediaStream()
        self.connected = False
        self.destroyed = False
        self._closed = False
        # Keep references so pending negotiation tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

        if stream is not None:
            for track in stream.get_tracks():
                self._attach(track)

        if initiator:
            # offerToReceiveAudio/Video: 상대가 나중에 붙일 트랙용 m-line 확보
            kinds = {transceiver.kind for transceiver in self.pc.getTransceivers()}
            for kind in MEDIA_KINDS:
                if kind not in kinds:
                    self.pc.addTransceiver(kind, direction="recvonly")

        @self.pc.on("track")
        def on_track(track):
            logger.info(f"[WebRTC] 원격 {track.kind} 트랙 수신")
            self.remote_stream.add_track(track)
            self.emit(EVENT_TRACK, track, self.remote_stream)

        @self.pc.on("connectionstatechange")
        def on_connection_state_change():
            state = self.pc.connectionState
            logger.info(f"[WebRTC] 연결 상태: {state}")
            if state == "failed":
                self._fail(TransportError("peer connection failed"))
            elif state == "closed":
                self._close()

        if initiator:
            channel = self.pc.createDataChannel(
                connection_config.DATA_CHANNEL_LABEL, ordered=False
            )
            self._setup_channel(channel)
            self._spawn(self._negotiate())
        else:
            @self.pc.on("datachannel")
            def on_datachannel(channel):
                self._setup_channel(channel)

    def _setup_channel(self, channel) -> None:
        self.channel = channel

        @channel.on("open")
        def on_open():
            self._on_open()

        @channel.on("message")
        def on_message(message):
            if isinstance(message, str):
                message = message.encode("utf-8")
            self.emit(EVENT_DATA, message)

        @channel.on("close")
        def on_close():
            self._close()

        # The answerer may receive an already-open channel
        if channel.readyState == "open":
            self._on_open()

    def _on_open(self) -> None:
        if self.connected or self.destroyed:
            return
        self.connected = True
        self.emit(EVENT_CONNECT)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _emit_local_description(self) -> None:
        description = self.pc.localDescription
        candidate_count = description.sdp.count("a=candidate:")
        logger.info(f"[WebRTC] {description.type} 생성 완료 (후보 수: {candidate_count})")
        self.emit(EVENT_SIGNAL, {"type": description.type, "sdp": description.sdp})

    async def _negotiate(self) -> None:
        try:
            offer = await self.pc.createOffer()
            await self.pc.setLocalDescription(offer)
        except Exception as e:
            logger.error(f"[WebRTC] offer 생성 실패: {e}")
            self._fail(TransportError(f"offer failed: {e}"))
            return
        if not self.destroyed:
            self._emit_local_description()

    async def _handle_signal(self, payload: dict) -> None:
        if self.destroyed:
            return
        try:
            if payload.get("renegotiate"):
                if self.initiator:
                    logger.info("[WebRTC] 상대의 재협상 요청 수신")
                    await self._negotiate()
                return

            if payload.get("candidate"):
                await self._add_ice_candidate(payload["candidate"])
                return

            if payload.get("sdp"):
                await self.pc.setRemoteDescription(
                    RTCSessionDescription(sdp=payload["sdp"], type=payload["type"])
                )
                if payload["type"] == "offer":
                    answer = await self.pc.createAnswer()
                    await self.pc.setLocalDescription(answer)
                    if not self.destroyed:
                        self._emit_local_description()
        except Exception as e:
            logger.error(f"[WebRTC] signal 처리 실패: {type(e).__name__}: {e}")
            self._fail(TransportError(f"signal failed: {e}"))

    async def _add_ice_candidate(self, candidate_data) -> None:
        if isinstance(candidate_data, dict):
            candidate_str = candidate_data.get("candidate", "")
            sdp_mid = candidate_data.get("sdpMid")
            sdp_mline_index = candidate_data.get("sdpMLineIndex")
        else:
            candidate_str, sdp_mid, sdp_mline_index = candidate_data, None, None

        if not candidate_str:
            return
        if candidate_str.startswith("candidate:"):
            candidate_str = candidate_str[10:]

        ice_candidate = candidate_from_sdp(candidate_str)
        ice_candidate.sdpMid = sdp_mid
        ice_candidate.sdpMLineIndex = sdp_mline_index
        await self.pc.addIceCandidate(ice_candidate)

    def _fail(self, error: TransportError) -> None:
        if self._closed:
            return
        self.emit(EVENT_ERROR, error)

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.emit(EVENT_CLOSE)

    # ========== Transport operations ==========

    def signal(self, payload: dict) -> None:
        self._spawn(self._handle_signal(payload))

    def send(self, data: Union[bytes, str]) -> None:
        if self.channel is None or self.channel.readyState != "open":
            raise TransportError("data channel is not open")
        self.channel.send(data)

    def _attach(self, track: Any) -> bool:
        """로컬 트랙을 보낼 transceiver에 연결합니다.

        m-line은 offer를 만드는 initiator만 추가할 수 있습니다. 비-initiator는
        종류마다 initiator가 열어 둔 m-line 하나를 재사용합니다.

        Returns:
            bool: 트랙이 연결되었는지 여부
        """
        if any(sender.track is track for sender in self.pc.getSenders()):
            return False
        if self.initiator:
            self.pc.addTrack(track)
            return True

        if self.pc.remoteDescription is None:
            # offer 수신 전: 같은 종류의 m-line과 짝지어질 transceiver는 하나뿐
            if any(t.kind == track.kind for t in self.pc.getTransceivers()):
                logger.warning(f"[WebRTC] {track.kind} 트랙은 하나만 보낼 수 있음, 추가 생략")
                return False
            self.pc.addTrack(track)
            return True

        for transceiver in self.pc.getTransceivers():
            if (
                transceiver.kind == track.kind
                and transceiver.mid is not None
                and transceiver.sender.track is None
            ):
                transceiver.sender.replaceTrack(track)
                transceiver.direction = "sendrecv"
                return True
        logger.warning(f"[WebRTC] 사용 가능한 {track.kind} transceiver 없음, 트랙 추가 생략")
        return False

    def add_track(self, track: Any, stream: MediaStream) -> None:
        if self.destroyed or not self._attach(track):
            return
        if not self.connected:
            return
        # simple-peer style renegotiation: only the initiator may offer
        if self.initiator:
            self._spawn(self._negotiate())
        else:
            self.emit(EVENT_SIGNAL, {"type": "renegotiate", "renegotiate": True})

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._spawn(self.pc.close())
        self._close()
