from fastapi import APIRouter, HTTPException

from api.schemas import ConnectionListResponse, ConnectionSummary
from database.errors import UnknownHandleError
from database.registry import ConnectionRegistry, default_registry

router = APIRouter()


def get_registry() -> ConnectionRegistry:
    return default_registry


def _summarize(nickname: str, connection) -> ConnectionSummary:
    details = connection.describe()
    details["database"] = str(details["database"])
    return ConnectionSummary(nickname=nickname, **details)


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/connections", response_model=ConnectionListResponse)
def list_connections() -> ConnectionListResponse:
    summaries = [_summarize(nickname, connection) for nickname, connection in get_registry().items()]
    return ConnectionListResponse(connections=summaries, count=len(summaries))


@router.get("/connections/{nickname}", response_model=ConnectionSummary)
def connection_detail(nickname: str) -> ConnectionSummary:
    try:
        connection = get_registry().find(nickname)
    except UnknownHandleError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _summarize(nickname, connection)
