"""Pydantic models for API payloads."""

from pydantic import BaseModel, ConfigDict, Field


class SavePortfoliosRequest(BaseModel):
    """Body of a full-collection save."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    portfolios: list[dict[str, object]]


class ErrorResponse(BaseModel):
    """Error payload returned by every endpoint."""

    error: str
    details: object | None = None
