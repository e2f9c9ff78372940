"""
Access Control Module

Back-office users, login sessions and the administrator check that gates
decryption of banking data. Sessions are referenced from signed JWT bearer
tokens so a revoked or expired session invalidates its token.
"""

import hashlib
import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt

from .audit import AuditEventType, AuditTrail
from .storage import StorageInterface, StorageRecord


logger = logging.getLogger(__name__)


class AccessDeniedError(PermissionError):
    """Base class for rejected access to protected operations"""
    status_code = 403


class AuthenticationRequiredError(AccessDeniedError):
    """No credential, or a credential that does not resolve to a live session"""
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AdminAccessRequiredError(AccessDeniedError):
    """Authenticated, but without administrator privilege"""
    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


@dataclass
class User(StorageRecord):
    """Back-office user"""
    username: str
    email: str
    full_name: str = ""
    is_admin: bool = False
    is_active: bool = True
    is_locked: bool = False
    failed_login_attempts: int = 0
    last_login: Optional[datetime] = None
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None

    @property
    def is_available(self) -> bool:
        """Check if user can authenticate (active and not locked)"""
        return self.is_active and not self.is_locked

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        if isinstance(data.get('last_login'), str):
            data['last_login'] = datetime.fromisoformat(data['last_login'])
        return super().from_dict(data)


@dataclass
class Session(StorageRecord):
    """User authentication session"""
    user_id: str
    expires_at: datetime
    is_active: bool = True
    ip_address: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.is_active and self.expires_at > datetime.now(timezone.utc)

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        if isinstance(data.get('expires_at'), str):
            data['expires_at'] = datetime.fromisoformat(data['expires_at'])
        return super().from_dict(data)


class AccessManager:
    """User store, session lifecycle and administrator checks"""

    USERS_TABLE = "users"
    SESSIONS_TABLE = "sessions"

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        session_hours: int = 8,
        max_failed_attempts: int = 5,
        password_min_length: int = 8
    ):
        self.storage = storage
        self.audit = audit_trail
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.session_hours = session_hours
        self.max_failed_attempts = max_failed_attempts
        self.password_min_length = password_min_length

    # Users

    def create_user(self, username: str, email: str, password: str,
                    full_name: str = "", is_admin: bool = False) -> User:
        """Create a user; usernames are unique and case-insensitive"""
        username = username.strip().lower()
        if not username:
            raise ValueError("Username is required")
        if self.get_user_by_username(username):
            raise ValueError(f"Username {username} already exists")
        if len(password) < self.password_min_length:
            raise ValueError(
                f"Password must be at least {self.password_min_length} characters"
            )

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            username=username,
            email=email,
            full_name=full_name,
            is_admin=is_admin,
        )
        self._set_password(user, password)
        self._save_user(user)

        self.audit.log_event(
            AuditEventType.USER_CREATED, "user", user.id,
            {"username": username, "is_admin": is_admin}
        )
        logger.info(f"User created: {username} (admin={is_admin})")
        return user

    def ensure_admin(self, username: str, password: str, email: str = "") -> User:
        """Create the bootstrap administrator unless the username already exists"""
        existing = self.get_user_by_username(username)
        if existing:
            return existing
        return self.create_user(username, email, password, full_name="Administrator", is_admin=True)

    def get_user(self, user_id: str) -> Optional[User]:
        data = self.storage.load(self.USERS_TABLE, user_id)
        return User.from_dict(data) if data else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        found = self.storage.find(self.USERS_TABLE, {"username": username.strip().lower()})
        return User.from_dict(found[0]) if found else None

    # Authentication

    def authenticate(self, username: str, password: str,
                     ip_address: Optional[str] = None) -> Session:
        """
        Verify credentials and open a session.

        Raises:
            AuthenticationRequiredError: unknown user, wrong password, locked or inactive account
        """
        user = self.get_user_by_username(username)
        if not user:
            self._login_failed(username, "user_not_found")
            raise AuthenticationRequiredError("Invalid credentials")

        if not user.is_available:
            self._login_failed(user.id, "user_not_available")
            raise AuthenticationRequiredError("Account is not available")

        if not self._verify_password(user, password):
            user.failed_login_attempts += 1
            if user.failed_login_attempts >= self.max_failed_attempts:
                user.is_locked = True
                logger.warning(f"User {user.username} locked after {user.failed_login_attempts} failed logins")
            user.updated_at = datetime.now(timezone.utc)
            self._save_user(user)
            self._login_failed(user.id, "invalid_password")
            raise AuthenticationRequiredError("Invalid credentials")

        now = datetime.now(timezone.utc)
        user.failed_login_attempts = 0
        user.last_login = now
        user.updated_at = now
        self._save_user(user)

        session = Session(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            expires_at=now + timedelta(hours=self.session_hours),
            ip_address=ip_address,
        )
        self.storage.save(self.SESSIONS_TABLE, session.id, session.to_dict())

        self.audit.log_event(
            AuditEventType.LOGIN_SUCCESS, "user", user.id,
            {"username": user.username}, user_id=user.id, session_id=session.id
        )
        return session

    def validate_session(self, session_id: str) -> Optional[Session]:
        """Return the session if it exists, is active, unexpired and its user is available"""
        data = self.storage.load(self.SESSIONS_TABLE, session_id)
        if not data:
            return None
        session = Session.from_dict(data)
        if not session.is_valid:
            return None
        user = self.get_user(session.user_id)
        if not user or not user.is_available:
            return None
        return session

    def logout(self, session_id: str) -> bool:
        data = self.storage.load(self.SESSIONS_TABLE, session_id)
        if not data:
            return False
        data['is_active'] = False
        data['updated_at'] = datetime.now(timezone.utc).isoformat()
        self.storage.save(self.SESSIONS_TABLE, session_id, data)

        self.audit.log_event(
            AuditEventType.LOGOUT, "user", data['user_id'],
            user_id=data['user_id'], session_id=session_id
        )
        return True

    # Tokens

    def issue_token(self, session: Session) -> str:
        """Signed bearer token referencing the session"""
        payload = {
            "sub": session.user_id,
            "sid": session.id,
            "iat": session.created_at,
            "exp": session.expires_at,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def resolve_token(self, token: Optional[str]) -> Optional[Session]:
        """Session behind a bearer token, or None for a missing, forged, expired or revoked token"""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected invalid token: {e}")
            return None

        session_id = payload.get("sid")
        if not session_id:
            return None
        session = self.validate_session(session_id)
        if session is None or session.user_id != payload.get("sub"):
            return None
        return session

    def require_session(self, token: Optional[str]) -> Session:
        session = self.resolve_token(token)
        if session is None:
            raise AuthenticationRequiredError()
        return session

    # Authorization

    def is_admin(self, session: Session) -> bool:
        """Administrator privilege check for a validated session"""
        user = self.get_user(session.user_id)
        return bool(user and user.is_available and user.is_admin)

    def require_admin(self, token: Optional[str]) -> Session:
        """
        Resolve a bearer token to an administrator session.

        Raises:
            AuthenticationRequiredError: no valid session (401)
            AdminAccessRequiredError: session user is not an administrator (403)
        """
        session = self.require_session(token)
        if not self.is_admin(session):
            raise AdminAccessRequiredError()
        return session

    # Helpers

    def _save_user(self, user: User) -> None:
        self.storage.save(self.USERS_TABLE, user.id, user.to_dict())

    def _login_failed(self, entity_id: str, reason: str) -> None:
        self.audit.log_event(
            AuditEventType.LOGIN_FAILED, "user", entity_id, {"reason": reason}
        )

    def _hash_password(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _set_password(self, user: User, password: str) -> None:
        user.password_salt = secrets.token_hex(16)
        user.password_hash = self._hash_password(password, user.password_salt)

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt:
            return False
        expected = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(expected, user.password_hash)
