from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class GuardReport(BaseModel):
    status: Literal["accepted", "rejected"]
    reason: str | None = None
    leading_verb: str | None = None
    matched_keywords: list[str] = Field(default_factory=list)
    safety_check: str | None = None
    wrapped_script: str | None = None


class RunReportModel(BaseModel):
    status: Literal["succeeded", "dry_run", "rejected", "failed"]
    client: str
    database: str
    branch: str
    environment: str | None = None
    host: str | None = None
    returncode: int | None = None
    message: str | None = None
    wrapped_script: str | None = None
    stdout: str = ""
    stderr: str = ""
