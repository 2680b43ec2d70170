"""Parsers endpoint — lists the source formats this instance can ingest."""

from fastapi import APIRouter, Depends

from namestats.application.schemas.parsers import ParserListResponse, ParserResponse
from namestats.application.services import ParserRegistry
from namestats.infrastructure.dependencies import get_parser_registry

router = APIRouter(prefix="/parsers", tags=["Parsers"])


@router.get("/", response_model=ParserListResponse)
async def list_parsers(
    registry: ParserRegistry = Depends(get_parser_registry),
) -> ParserListResponse:
    return ParserListResponse(
        parsers=[ParserResponse.model_validate(meta) for meta in registry.metadata()]
    )
