"""Subject and topic catalog schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubjectResponse(BaseModel):
    """A subject of the static catalog."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Subject identifier")
    name: str = Field(description="Subject name")
    icon: str | None = Field(default=None, description="Display icon")


class TopicResponse(BaseModel):
    """A topic, belonging to exactly one subject."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Topic identifier")
    subject_id: UUID = Field(description="Owning subject")
    name: str = Field(description="Topic name")
