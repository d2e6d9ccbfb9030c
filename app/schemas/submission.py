from datetime import datetime

from pydantic import BaseModel, Field, HttpUrl


class SubmissionCreate(BaseModel):
    meeting_id: int
    file_url: HttpUrl
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=127)
    file_size: int = Field(ge=0)


class SubmissionUser(BaseModel):
    username: str
    email: str

    class Config:
        from_attributes = True


class SubmissionOut(BaseModel):
    id: int
    meeting_id: int
    user_id: int
    file_url: str
    file_name: str
    file_type: str
    file_size: int
    created_at: datetime
    updated_at: datetime | None = None
    user: SubmissionUser | None = None

    class Config:
        from_attributes = True
