from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Portfolio(BaseModel):
    """Portfolio extraction as sent by the gateway.

    Every field is optional; only the fields the gateway actually sent end up
    in the session snapshot (see ``snapshot``).
    """

    headline: str | None = None
    about: str | None = None
    skills: list[str] | None = None
    interests: list[str] | None = None

    model_config = {"extra": "allow"}

    def snapshot(self) -> dict:
        return self.model_dump(exclude_unset=True)


class MatchArtifact(BaseModel):
    id: str
    title: str
    company: str
    match_percentage: float = Field(ge=0, le=100)
    skills: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
