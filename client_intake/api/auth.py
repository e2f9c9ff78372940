"""
Service container and authentication dependencies
"""

import logging
import threading
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..audit import AuditTrail
from ..banking_data import BankingDataService
from ..config import IntakeConfig, get_config
from ..encryption import BankingDataCipher, get_cipher
from ..notifications import EmailProvider, LogEmailProvider, RegistrationNotifier, SMTPEmailProvider
from ..rate_limit import FixedWindowRateLimiter, RateLimiter
from ..rbac import AccessManager, Session
from ..registrations import RegistrationManager
from ..storage import InMemoryStorage, SQLiteStorage, StorageInterface


logger = logging.getLogger(__name__)


class IntakeSystem:
    """Client intake components wired from configuration"""

    def __init__(
        self,
        config: Optional[IntakeConfig] = None,
        storage: Optional[StorageInterface] = None,
        cipher_provider: Callable[[], BankingDataCipher] = get_cipher,
        email_provider: Optional[EmailProvider] = None,
        rate_limiter: Optional[RateLimiter] = None
    ):
        self.config = config or get_config()

        if storage is not None:
            self.storage = storage
        elif self.config.use_sqlite:
            self.storage = SQLiteStorage(self.config.database_path)
        else:
            self.storage = InMemoryStorage()

        self.audit_trail = AuditTrail(self.storage)
        self.access_manager = AccessManager(
            self.storage,
            self.audit_trail,
            jwt_secret=self.config.jwt_secret,
            jwt_algorithm=self.config.jwt_algorithm,
            session_hours=self.config.session_hours,
            max_failed_attempts=self.config.max_failed_logins,
            password_min_length=self.config.password_min_length,
        )
        self.cipher_provider = cipher_provider
        self.banking_service = BankingDataService(
            self.access_manager, self.audit_trail, cipher_provider
        )
        self.registration_manager = RegistrationManager(
            self.storage,
            self.audit_trail,
            cipher_provider,
            mandate_reference_prefix=self.config.mandate_reference_prefix,
        )
        self.notifier = RegistrationNotifier(
            email_provider or self._create_email_provider(),
            recipient=self.config.notification_recipient,
            creditor_name=self.config.creditor_name,
            creditor_identifier=self.config.creditor_identifier,
        )
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter(
            max_requests=self.config.rate_limit_max_requests,
            window_seconds=self.config.rate_limit_window_seconds,
        )

        if self.config.admin_username and self.config.admin_password:
            self.access_manager.ensure_admin(
                self.config.admin_username, self.config.admin_password, self.config.admin_email
            )

    def _create_email_provider(self) -> EmailProvider:
        """SMTP when fully configured, otherwise log-only"""
        config = self.config
        if not (config.smtp_host and config.smtp_user and config.smtp_password):
            logger.warning("SMTP configuration missing, registration emails will only be logged")
            return LogEmailProvider(history=0)
        return SMTPEmailProvider(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            sender=config.notification_sender or config.smtp_user,
            timeout=config.smtp_timeout,
        )


_system: Optional[IntakeSystem] = None
_system_lock = threading.Lock()


def get_intake_system() -> IntakeSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _system
    with _system_lock:
        if _system is None:
            _system = IntakeSystem()
        return _system


# JWT Security
security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[str]:
    """Raw bearer token, None when the header is absent or not a bearer credential"""
    return credentials.credentials if credentials else None


def require_session(
    token: Optional[str] = Depends(get_bearer_token),
    system: IntakeSystem = Depends(get_intake_system)
) -> Session:
    """Any authenticated user (401 otherwise)"""
    return system.access_manager.require_session(token)


def require_admin(
    token: Optional[str] = Depends(get_bearer_token),
    system: IntakeSystem = Depends(get_intake_system)
) -> Session:
    """Authenticated administrator (401 / 403 otherwise)"""
    return system.access_manager.require_admin(token)


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """
    Client address used for rate limiting and audit.

    The TCP peer is used unless the service sits behind a proxy that sets
    X-Forwarded-For; any client can forge that header, so it is honoured only
    when trust_forwarded is enabled.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = request.headers.get("cf-connecting-ip")
        if real_ip:
            return real_ip
    return request.client.host if request.client else "unknown"
