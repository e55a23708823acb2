"""self/wire 식별자 변환 모듈.

로컬 상태에서는 예약된 sentinel(``ME``)이 로컬 참가자를 뜻하고, 다른 참가자는
서버가 발급한 실제 ID로 표기됩니다(self 표기). 네트워크로 나가는 ``room``
메시지는 송신자 자신을 항상 sentinel로 표기하며, 수신자는 이를 역변환합니다.

수신 규칙 (순서대로, 한 메시지에는 둘 중 하나만 적용):
    1. participantId == ME       → 송신자 ID (송신자 자신에 대한 메시지)
    2. participantId == 로컬 실제 ID → ME (로컬 참가자 자신에 대한 메시지)

Examples:
    >>> alice = IdentityTranslator("alice-id")
    >>> bob = IdentityTranslator("bob-id")
    >>> bob.to_local("alice-id", alice.to_wire("alice-id"))
    'alice-id'
    >>> bob.to_local("alice-id", alice.to_wire("bob-id"))
    '_me_'
"""

from typing import Optional

# 로컬 참가자를 뜻하는 예약 식별자
ME = "_me_"


class IdentityTranslator:
    """로컬 참가자 ID를 기준으로 self/wire 표기를 변환합니다.

    Attributes:
        local_id (Optional[str]): 랑데부 서버가 발급한 로컬 참가자의 실제 ID.
            아직 발급 전이면 None이며, 이때는 sentinel 규칙만 적용됩니다.
    """

    def __init__(self, local_id: Optional[str] = None):
        self.local_id = local_id

    def to_wire(self, participant_id: str) -> str:
        """송신용 표기로 변환합니다. 로컬 실제 ID는 sentinel로 통일됩니다."""
        if self.local_id is not None and participant_id == self.local_id:
            return ME
        return participant_id

    def to_local(self, sender_id: str, participant_id: str) -> str:
        """``sender_id``가 보낸 메시지의 participantId를 로컬 표기로 변환합니다."""
        if participant_id == ME:
            return sender_id
        if self.local_id is not None and participant_id == self.local_id:
            return ME
        return participant_id

    def is_self(self, participant_id: str) -> bool:
        return participant_id == ME or (
            self.local_id is not None and participant_id == self.local_id
        )
