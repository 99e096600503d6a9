import enum

from pydantic import BaseModel, ConfigDict


class CallDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    UNKNOWN = "unknown"


class CallRecord(BaseModel):
    event: str = ""
    call_id: str = ""
    from_number: str = ""
    to_number: str = ""
    internal: str = ""
    direction: CallDirection = CallDirection.UNKNOWN
    duration_seconds: int = 0
    disposition: str = ""
    is_recorded: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def match_phone(self) -> str:
        """The external party's number, used to find the CRM candidate."""
        if self.direction == CallDirection.OUTBOUND:
            return self.to_number
        return self.from_number
