"""
Banking Data Service

Service boundary for the banking-data cipher. Encryption is open to the
submission path; decryption requires an authenticated administrator and
reports each field independently.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .audit import AuditEventType, AuditTrail
from .encryption import (
    BankingDataCipher, DECRYPTION_ERROR_MARKER, decrypt_fields, encrypt_fields, get_cipher
)
from .rbac import AccessManager, AdminAccessRequiredError, Session


logger = logging.getLogger(__name__)


@dataclass
class BankingFields:
    """IBAN and SWIFT/BIC values in one direction of the cipher"""
    iban: Optional[str] = None
    swift_bic: Optional[str] = None

    def present(self) -> Dict[str, str]:
        return {k: v for k, v in (("iban", self.iban), ("swift_bic", self.swift_bic)) if v}


@dataclass
class DecryptionOutcome:
    """Per-field decryption result; failed fields hold DECRYPTION_ERROR_MARKER"""
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def failed_fields(self):
        return [name for name, value in self.data.items() if value == DECRYPTION_ERROR_MARKER]


class BankingDataService:
    """Encrypt on intake, decrypt for administrators"""

    def __init__(
        self,
        access_manager: AccessManager,
        audit_trail: AuditTrail,
        cipher_provider: Callable[[], BankingDataCipher] = get_cipher
    ):
        self.access = access_manager
        self.audit = audit_trail
        # Resolved per call so a missing key fails the call, not construction
        self._cipher_provider = cipher_provider

    def encrypt(self, fields: BankingFields) -> Dict[str, str]:
        """
        Encrypt the present fields. No authentication is required.

        Raises:
            EncryptionConfigError: the key is not configured
        """
        cipher = self._cipher_provider()
        result = encrypt_fields(cipher, iban=fields.iban, swift_bic=fields.swift_bic)
        logger.info(f"Encrypted banking fields: {sorted(result)}")
        return result

    def decrypt(self, fields: BankingFields, token: Optional[str],
                entity_id: str = "adhoc") -> DecryptionOutcome:
        """
        Decrypt the present fields for an administrator.

        Raises:
            AuthenticationRequiredError: no token or no live session behind it
            AdminAccessRequiredError: the session user is not an administrator
            EncryptionConfigError: the key is not configured
        """
        session = self.authorize(token, entity_id)
        return self.decrypt_authorized(fields, session, entity_id)

    def authorize(self, token: Optional[str], entity_id: str = "adhoc") -> Session:
        """Run the two-step decrypt gate once for a request"""
        session = self.access.require_session(token)
        if not self.access.is_admin(session):
            logger.warning(f"Unauthorized decrypt attempt by user {session.user_id}")
            self.audit.log_event(
                AuditEventType.BANKING_DATA_DECRYPT_DENIED, "registration", entity_id,
                user_id=session.user_id, session_id=session.id
            )
            raise AdminAccessRequiredError()
        return session

    def decrypt_authorized(self, fields: BankingFields, session: Session,
                           entity_id: str = "adhoc") -> DecryptionOutcome:
        """Decrypt for a session that already passed authorize()"""
        cipher = self._cipher_provider()
        outcome = DecryptionOutcome(
            data=decrypt_fields(cipher, iban=fields.iban, swift_bic=fields.swift_bic)
        )

        failed = outcome.failed_fields
        if failed:
            self.audit.log_event(
                AuditEventType.BANKING_DATA_DECRYPT_FAILED, "registration", entity_id,
                {"fields": failed}, user_id=session.user_id, session_id=session.id
            )
        if len(failed) < len(outcome.data):
            self.audit.log_event(
                AuditEventType.BANKING_DATA_DECRYPTED, "registration", entity_id,
                {"fields": [n for n in outcome.data if n not in failed]},
                user_id=session.user_id, session_id=session.id
            )
        return outcome
