"""Pydantic schemas for built-in and custom roles."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Role(BaseModel):
    id: str
    name: str
    description: str = ""
    color: str = "#a3a3a3"
    icon: str = "User"
    permissions: List[str] = Field(default_factory=list)
    is_custom: bool = True


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    color: str = "#a3a3a3"
    icon: str = "User"
    permissions: List[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    permissions: Optional[List[str]] = None
