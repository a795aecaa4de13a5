from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from", min_length=2, max_length=2)
    to: str = Field(min_length=2, max_length=2)
    promotion: Optional[str] = Field(default=None, max_length=1)


class JoinRoomRequest(BaseModel):
    roomId: str


class SubmitMoveRequest(BaseModel):
    roomId: str
    move: MovePayload
    resultingPosition: Optional[str] = None


class ResetRoomRequest(BaseModel):
    roomId: str


class LastMove(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: str


class RoomSummaryResponse(BaseModel):
    roomId: str
    participants: int
    isFull: bool
    position: str
    lastMove: Optional[LastMove] = None
    createdAt: str
