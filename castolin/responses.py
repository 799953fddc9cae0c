"""Response envelopes shared by the read endpoints."""

from pydantic import BaseModel


class ListResponse(BaseModel):
    """Envelope for collection endpoints."""

    success: bool = True
    data: list[dict]
    count: int

    @classmethod
    def of(cls, rows: list[dict]) -> "ListResponse":
        return cls(data=rows, count=len(rows))


class ItemResponse(BaseModel):
    """Envelope for single-record endpoints."""

    success: bool = True
    data: dict


class UpdateResponse(BaseModel):
    """Envelope for profile updates."""

    success: bool = True
    message: str
    affectedRows: int
