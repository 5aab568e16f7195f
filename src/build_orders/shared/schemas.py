from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# --- Limits ---

TITLE_MAX = 100
DESCRIPTION_MAX = 2000
STEP_DESCRIPTION_MAX = 1000
ACTION_MAX = 200
MINUTES_MAX = 60
SECONDS_MAX = 59
VILLAGERS_MAX = 200


class CamelModel(BaseModel):
    """Wire models use camelCase names; snake_case is accepted on input too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Basic Primitives ---

class Resources(CamelModel):
    wood: int = Field(..., ge=0, strict=True)
    food: int = Field(..., ge=0, strict=True)
    gold: int = Field(..., ge=0, strict=True)
    stone: int = Field(..., ge=0, strict=True)


# --- API Payloads ---

class StepIn(CamelModel):
    order: int = Field(..., ge=0, strict=True)
    time_minutes: int = Field(..., ge=0, le=MINUTES_MAX, strict=True)
    time_seconds: int = Field(..., ge=0, le=SECONDS_MAX, strict=True)
    villager_count: int = Field(..., ge=0, le=VILLAGERS_MAX, strict=True)
    action: str = Field(..., min_length=1, max_length=ACTION_MAX)
    description: str = Field(..., max_length=STEP_DESCRIPTION_MAX)
    resources: Resources


class BuildOrderCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX)
    description: str = Field(..., max_length=DESCRIPTION_MAX)
    civilization: str = Field(..., min_length=1)
    map_type: List[str]
    is_public: bool = Field(False, strict=True)
    steps: List[StepIn]


class BuildOrderUpdate(CamelModel):
    """Partial update. Omitted fields are left alone; steps are replaced wholesale."""
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX)
    civilization: Optional[str] = Field(None, min_length=1)
    map_type: Optional[List[str]] = None
    is_public: Optional[bool] = Field(None, strict=True)
    steps: Optional[List[StepIn]] = None

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} may not be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# --- Responses ---

class AuthorOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class StepOut(StepIn):
    id: str
    build_order_id: str
    # Stored rows are trusted; bounds are enforced on the way in.
    model_config = ConfigDict(from_attributes=True)


class BuildOrderOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    civilization: str
    map_type: List[str]
    is_public: bool
    views: int
    likes: int
    author_id: str
    author: Optional[AuthorOut] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    steps: List[StepOut] = []


class UserOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    image: Optional[str] = None
    steam_id: Optional[str] = None


class SessionOut(CamelModel):
    user: UserOut
    expires: datetime
