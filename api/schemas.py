from typing import List, Optional

from pydantic import BaseModel, Field


class ConnectionSummary(BaseModel):
    nickname: str
    adapter: str
    database: str
    host: Optional[str] = None
    query_count: int = Field(default=0, ge=0)
    query_time: float = Field(default=0.0, ge=0.0)
    engine_time: float = Field(default=0.0, ge=0.0)
    in_transaction: bool = False
    fatal_errors: bool = True
    error: Optional[str] = Field(default=None, description="Last recorded engine error, if any")
    closed: bool = False


class ConnectionListResponse(BaseModel):
    connections: List[ConnectionSummary]
    count: int
