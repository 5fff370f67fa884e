from __future__ import annotations
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any

from .status_canon import CanonicalStatus, classify


class BaseJobModel(BaseModel):
    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _normalize_status(cls, v):
        return classify(v)


class AudioSentence(BaseModel):
    text: str = ""
    start: float = 0.0
    end: float = 0.0


class VocabJobItem(BaseModel):
    id: int = 0
    word: str = ""
    status: str = "PENDING"
    error_message: Optional[str] = None


class CanonicalJob(BaseJobModel):
    id: int
    status: CanonicalStatus
    job_type: Optional[str] = None
    progress_percent: Optional[float] = None
    current_step: Optional[str] = None
    total_items: Optional[int] = None
    completed_items: Optional[int] = None
    failed_items: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    finalized_at: Optional[datetime] = None

    lesson_id: Optional[int] = None
    lesson_name: Optional[str] = None
    lesson_type: Optional[int] = None
    transcript: Optional[str] = None
    translated_script: Optional[str] = None
    audio_url: Optional[str] = None
    audio_object: Optional[str] = None
    sentences: List[AudioSentence] = Field(default_factory=list)
    items: List[VocabJobItem] = Field(default_factory=list)

    def progress(self) -> Optional[float]:
        """Percent done; derived from item counts when the backend sends none."""
        if self.progress_percent is not None:
            return self.progress_percent
        if self.total_items and self.completed_items is not None:
            return round(self.completed_items * 100.0 / self.total_items, 1)
        return None


class UploadTask(BaseJobModel):
    task_id: str
    status: CanonicalStatus
    progress_percent: Optional[float] = None
    current_step: Optional[str] = None
    total_items: Optional[int] = None
    completed_items: Optional[int] = None

    def progress(self) -> Optional[float]:
        return self.progress_percent


class JobPage(BaseModel):
    content: List[CanonicalJob] = Field(default_factory=list)
    page_number: int = 1
    page_size: int = 0
    total_elements: int = 0
    total_pages: int = 1
    last: bool = True


class JobFilter(BaseModel):
    page: Optional[int] = None
    size: Optional[int] = None
    lesson_id: Optional[int] = None
    job_type: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None

    def to_query(self) -> Dict[str, Any]:
        return {k: v for k, v in self.model_dump().items() if v not in (None, "")}
