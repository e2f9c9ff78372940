"""
Client registration endpoints
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from .auth import IntakeSystem, client_ip, get_intake_system, require_admin
from .schemas import (
    RegistrationListResponse,
    RegistrationSummary,
    SubmitRegistrationRequest,
    SubmitRegistrationResponse,
)
from ..banking_data import BankingFields
from ..iban import normalize_iban
from ..rbac import Session
from ..registrations import ClientRegistration


logger = logging.getLogger(__name__)

router = APIRouter()


def decrypted_banking(system: IntakeSystem, registration: ClientRegistration,
                      session: Session) -> Dict[str, str]:
    """Clear banking fields of a stored registration for an administrator"""
    fields = BankingFields(iban=registration.iban, swift_bic=registration.swift_bic)
    if not fields.present():
        return {}
    outcome = system.banking_service.decrypt_authorized(fields, session, registration.id)
    return outcome.data


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SubmitRegistrationResponse)
async def submit_registration(
    request: SubmitRegistrationRequest,
    http_request: Request,
    system: IntakeSystem = Depends(get_intake_system)
):
    """Public registration form submission"""
    ip = client_ip(http_request, system.config.trust_forwarded_headers)
    system.rate_limiter.check(ip)

    registration = system.registration_manager.submit(request.model_dump(), client_ip=ip)

    try:
        sent = await system.notifier.notify(registration, plain_iban=normalize_iban(request.iban))
    except Exception:
        # The registration is already stored; a notification problem must not undo it
        logger.exception(f"Notification for registration {registration.id} failed")
        sent = False

    return SubmitRegistrationResponse(
        registration_id=registration.id,
        sepa_mandate_reference=registration.sepa_mandate_reference,
        notification_sent=sent,
        message="Registration received",
    )


@router.get("", response_model=RegistrationListResponse)
async def list_registrations(
    search: Optional[str] = Query(None, description="Company name, CIF, email or contact person"),
    session: Session = Depends(require_admin),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Registrations, newest first, optionally filtered by a search term"""
    registrations = system.registration_manager.list_registrations(search)
    return RegistrationListResponse(
        total=len(registrations),
        registrations=[
            RegistrationSummary(
                id=r.id,
                company_name=r.company_name,
                cif=r.cif,
                email=r.email,
                city=r.city,
                payment_method=r.payment_method.value if r.payment_method else None,
                sepa_mandate_reference=r.sepa_mandate_reference,
                created_at=r.created_at.isoformat(),
            )
            for r in registrations
        ],
    )


@router.get("/{registration_id}")
async def get_registration(
    registration_id: str,
    session: Session = Depends(require_admin),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Full registration with banking fields in clear"""
    registration = system.registration_manager.get_registration(registration_id)
    if not registration:
        return JSONResponse(status_code=404, content={"error": "Registration not found"})

    data = registration.to_dict()
    data.update(iban=None, swift_bic=None)
    data.update(decrypted_banking(system, registration, session))
    return data
