from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional


class SyncAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"


class SyncOutcome(BaseModel):
    action: SyncAction
    local_id: int
    ro_number: int
    external_id: int


class SyncSummary(BaseModel):
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    pages_fetched: int = 0
    aborted: bool = False
    errors: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.created + self.updated

    def record(self, outcome: SyncOutcome) -> None:
        self.processed += 1
        if outcome.action is SyncAction.CREATE:
            self.created += 1
        else:
            self.updated += 1

    def record_failure(self, external_id, error: str) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append(f"PO {external_id}: {error}")


class SyncRequestSchema(BaseModel):
    external_ids: List[int] = Field(min_length=1)


class SyncAllRequestSchema(BaseModel):
    page_size: Optional[int] = Field(None, gt=0, le=200)
    max_pages: Optional[int] = Field(None, gt=0)
