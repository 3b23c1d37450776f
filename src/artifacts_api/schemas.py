from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArtifactInput(BaseModel):
    """Upload payload: base64 image data and its declared type"""
    model_config = ConfigDict(populate_by_name=True)

    file: str = Field(..., alias="File")
    type: str = Field("", alias="Type")


class ArtifactRecordOut(BaseModel):
    url: str
    file_type: str = Field(..., serialization_alias="fileType")
    upload_date_time: datetime = Field(..., serialization_alias="uploadDateTime")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("upload_date_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite drops the offset; uploads are always stamped in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
