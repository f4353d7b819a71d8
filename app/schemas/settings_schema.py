from pydantic import BaseModel, Field, field_validator
from typing import Optional


class SettingCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=500)

    @field_validator("key")
    def normalize_key(cls, v):
        # stored upper-case so PENALTY_RATE / penalty_rate are the same row
        return v.strip().upper()


class SettingPatch(BaseModel):
    key: str
    value: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("key")
    def normalize_key(cls, v):
        return v.strip().upper()


class SettingOut(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    updated_by: Optional[int] = None

    class Config:
        from_attributes = True
