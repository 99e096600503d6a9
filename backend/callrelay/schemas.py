from typing import Optional

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    ok: bool = True


class HealthStatus(BaseModel):
    status: str = "ok"


class CandidateCreate(BaseModel):
    first_name: str = "Caller"
    last_name: str
    phone: str
    description: str
    owner_id: Optional[int] = None


class ActivityNote(BaseModel):
    candidate_id: str
    type: str = "call"
    subject: str
    description: str
    call_id: str
    from_number: str = Field(serialization_alias="from")
    to_number: str = Field(serialization_alias="to")
    extension: str
    duration: int
    event: str
    disposition: str
    direction: str


class CrmUser(BaseModel):
    id: str
    name: str
