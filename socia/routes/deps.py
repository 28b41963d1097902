"""Shared dependencies for the route modules."""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ..relay import RelayEngine
from ..sms import SMSService
from ..suggestions import SuggestionAssembler


def get_engine(request: Request) -> RelayEngine:
    return request.app.state.engine


def get_assembler(request: Request) -> SuggestionAssembler:
    return request.app.state.assembler


def get_sms(request: Request) -> SMSService:
    return request.app.state.sms


Engine = Annotated[RelayEngine, Depends(get_engine)]
Assembler = Annotated[SuggestionAssembler, Depends(get_assembler)]
SMS = Annotated[SMSService, Depends(get_sms)]


def parse_id(value: str, label: str = "ID") -> str:
    """Canonical form of a UUID path parameter; 400 if malformed."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {label}",
        )
