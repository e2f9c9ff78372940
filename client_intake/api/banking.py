"""
Banking data cipher endpoint
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .auth import IntakeSystem, get_bearer_token, get_intake_system
from .schemas import (
    BankingDataResponse, EncryptBankingDataRequest, ErrorResponse, banking_data_request_adapter
)
from ..banking_data import BankingFields


logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_ACTION = "Invalid action. Use 'encrypt' or 'decrypt'"


@router.post(
    "",
    response_model=BankingDataResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def banking_data(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Encrypt banking fields (open) or decrypt them (administrators only)"""
    try:
        body = await request.json()
        payload = banking_data_request_adapter.validate_python(body)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.info(f"Rejected banking-data request: {e}")
        return JSONResponse(status_code=400, content={"error": INVALID_ACTION})

    fields = BankingFields(iban=payload.iban, swift_bic=payload.swift_bic)

    if isinstance(payload, EncryptBankingDataRequest):
        data = system.banking_service.encrypt(fields)
    else:
        data = system.banking_service.decrypt(fields, token).data

    return {"success": True, "data": data}
