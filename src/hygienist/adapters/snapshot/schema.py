"""Pydantic models for the JSON snapshot export."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SnapshotDocument(BaseModel):
    """One exported document; unknown fields are kept verbatim."""

    model_config = ConfigDict(extra="allow")

    id: str

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("document id must not be blank")
        return stripped

    def fields(self) -> dict[str, Any]:
        return {name: value for name, value in self.model_dump().items() if name != "id"}


class SnapshotPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    people: list[SnapshotDocument] = Field(default_factory=list["SnapshotDocument"])
    schedules: list[SnapshotDocument] = Field(default_factory=list["SnapshotDocument"])
    rooms: list[SnapshotDocument] = Field(default_factory=list["SnapshotDocument"])
