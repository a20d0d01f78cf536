from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# === Domain objects ===


class Card(BaseModel):
    id: int
    title: str
    url: str
    color: str


# === API Schemas ===


class PasswordIn(BaseModel):
    password: str = ""


class TokenOut(BaseModel):
    success: bool
    token: Optional[str] = None
    expiresAt: Optional[int] = None


class Result(BaseModel):
    success: bool
    message: Optional[str] = None


class LogFilesOut(BaseModel):
    success: bool = True
    files: List[str]


class IpCount(BaseModel):
    ip: str
    count: int


class LogStatsOut(BaseModel):
    success: bool = True
    file: str
    total: int
    unique: int
    counts: Dict[str, int]
    top: List[IpCount]
    query: Optional[str] = None
    matches: List[str] = Field(default_factory=list)
