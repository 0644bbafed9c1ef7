"""ProcessingResponse model definition"""
import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class UserProcessingResult(BaseModel):
    """Outcome of processing one user's plays for the day"""
    user_id: int = Field(description="Internal user ID")
    plays_found: int = Field(0, description="Plays of today that passed the track-count filter")
    albums_finished: List[str] = Field(default_factory=list, description="Spotify IDs of albums listened to in full")
    albums_unfinished: List[str] = Field(default_factory=list, description="Spotify IDs of albums only partly played")
    saved: int = Field(0, description="New album listens stored")
    backlog_removed: int = Field(0, description="Backlog items removed")
    scheduled_removed: int = Field(0, description="Scheduled listens removed")
    error: Optional[str] = Field(None, description="Error that stopped processing for this user")

    @property
    def ok(self) -> bool:
        return self.error is None

class ProcessingResponse(BaseModel):
    """
    Summary of one processing run across all users.

    Attributes:
        processed_date: UTC date whose plays were processed
        users_processed: Number of users attempted
        users_failed: Number of users whose processing raised
        albums_saved: Total new album listens stored
        results: Per-user outcomes
    """
    processed_date: datetime.date
    users_processed: int = 0
    users_failed: int = 0
    albums_saved: int = 0
    results: List[UserProcessingResult] = []

    def add(self, result: UserProcessingResult) -> None:
        self.results.append(result)
        self.users_processed += 1
        self.albums_saved += result.saved
        if not result.ok:
            self.users_failed += 1
