"""Pydantic DTOs for registered source parsers."""

from pydantic import BaseModel


class ParserResponse(BaseModel):
    source_id: str
    name: str
    description: str
    version: str

    model_config = {"from_attributes": True}


class ParserListResponse(BaseModel):
    parsers: list[ParserResponse]
