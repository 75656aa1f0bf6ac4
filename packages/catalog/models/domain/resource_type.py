from typing import Optional
from pydantic import BaseModel


class ResourceType(BaseModel):
    id: int
    name: str
    unit: str
    consumable: bool = True

    class Config:
        from_attributes = True


class ResourceTypeRef(BaseModel):
    """Reference to a resource type by id or by name (and optionally unit)."""

    id: Optional[int] = None
    name: Optional[str] = None
    unit: Optional[str] = None
