from typing import List, Optional

from app.modules.automation.schemas import CamelModel


class CronSweepResponse(CamelModel):
    success: bool
    processed_count: int
    restored_count: int
    errors: Optional[List[str]] = None
    skipped: bool = False
    timestamp: str
