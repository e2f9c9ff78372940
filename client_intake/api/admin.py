"""
Back-office administration endpoints
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from .auth import IntakeSystem, get_intake_system, require_admin
from .registrations import decrypted_banking
from ..audit import AuditEventType
from ..encryption import EncryptionConfigError
from ..logging_config import log_action
from ..export import export_filename, export_registrations_csv
from ..rbac import Session


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/export.csv")
async def export_registrations(
    session: Session = Depends(require_admin),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Download every registration as a spreadsheet-ready CSV"""
    registrations = system.registration_manager.list_registrations()
    rows = [(r, decrypted_banking(system, r, session)) for r in registrations]
    content = export_registrations_csv(rows)

    system.audit_trail.log_event(
        AuditEventType.REGISTRATIONS_EXPORTED, "registration", "all",
        {"count": len(rows)}, user_id=session.user_id, session_id=session.id
    )
    log_action(
        logger, "info", f"Exported {len(rows)} registrations",
        user_id=session.user_id, action="export", resource="registrations"
    )

    filename = export_filename(datetime.now(timezone.utc))
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/audit/verify")
async def verify_audit_trail(
    session: Session = Depends(require_admin),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Check the hash chain of the audit trail"""
    return system.audit_trail.verify_integrity()


@router.get("/encryption/status")
async def encryption_status(
    session: Session = Depends(require_admin),
    system: IntakeSystem = Depends(get_intake_system)
):
    """Whether a usable encryption key is configured; never reveals the key"""
    try:
        system.cipher_provider()
    except EncryptionConfigError as e:
        logger.error(f"Encryption key check failed: {e}")
        return {"configured": False, "algorithm": "AES-256-GCM"}
    return {"configured": True, "algorithm": "AES-256-GCM"}
