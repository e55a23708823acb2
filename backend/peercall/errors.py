"""피어 연결 코어의 예외 정의.

모든 실패는 해당 참가자의 세션 범위 안에서만 처리되며,
다른 세션이나 공유 테이블을 정리하지 않습니다.

Classes:
    PeerCallError: 모든 코어 예외의 기본 클래스
    TransportError: 트랜스포트 오류 (세션 복구 불가, 재시도 없음)
    DecodeError: 수신 데이터 파싱 실패 (로컬 전용, 세션 유지)
    UnsupportedCapability: 필요한 로컬 기능 미지원 (작업 중단)
"""

from typing import Optional


class PeerCallError(Exception):
    """피어 연결 코어 예외의 기본 클래스."""


class TransportError(PeerCallError):
    """트랜스포트에서 발생한 오류.

    해당 세션에서는 복구할 수 없으며, 세션 파괴 + 테이블 제거 + 사용자 알림을
    유발합니다. 코어는 자동으로 재시도하지 않습니다.

    Attributes:
        participant_id (Optional[str]): 오류가 발생한 참가자 ID
    """

    def __init__(self, message: str, participant_id: Optional[str] = None):
        super().__init__(message)
        self.participant_id = participant_id


class DecodeError(PeerCallError):
    """수신한 메시지 봉투를 디코딩할 수 없음.

    UTF-8 디코딩 실패, 잘못된 JSON, 알려진 타입의 잘못된 payload가 해당됩니다.
    메시지는 버려지고 세션은 유지됩니다.
    """


class UnsupportedCapability(PeerCallError):
    """요청한 작업에 필요한 로컬 기능을 사용할 수 없음.

    Attributes:
        capability (str): 누락된 기능 이름 (예: "file_reader")
    """

    def __init__(self, capability: str, message: Optional[str] = None):
        super().__init__(message or f"{capability} is not supported")
        self.capability = capability
