"""
Client Registration Module

Intake of client registration forms: company data, contact person, delivery
address, payment method, banking data and SEPA direct-debit mandate.

Banking fields are validated, normalized and encrypted before the record is
written, so storage only ever receives ciphertext for IBAN and SWIFT/BIC.
"""

import logging
import re
import secrets
import uuid
from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .audit import AuditEventType, AuditTrail
from .encryption import BankingDataCipher, encrypt_fields, get_cipher
from .iban import normalize_iban, normalize_swift_bic, validate_iban, validate_swift_bic
from .storage import StorageInterface, StorageRecord


logger = logging.getLogger(__name__)


class PaymentMethod(Enum):
    """Payment methods offered on the form"""
    BANK_TRANSFER = "transferencia"
    PROMISSORY_NOTE = "pagare"
    CASH = "efectivo"
    DIRECT_DEBIT = "domiciliacion"


class SepaPaymentType(Enum):
    """SEPA mandate payment type"""
    PERIODIC = "periodic"
    SINGLE = "single"


@dataclass
class ClientRegistration(StorageRecord):
    """A submitted client registration; iban and swift_bic hold ciphertext"""
    # Company
    company_name: str = ""
    commercial_name: Optional[str] = None
    cif: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    province: str = ""
    country: str = "España"
    phone: str = ""
    mobile: Optional[str] = None
    email: str = ""
    website: Optional[str] = None

    # Contact person
    contact_person: str = ""
    contact_position: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    # Delivery address
    delivery_same_as_main: bool = True
    delivery_address: Optional[str] = None
    delivery_postal_code: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_province: Optional[str] = None
    delivery_country: Optional[str] = None
    delivery_contact_person: Optional[str] = None
    delivery_phone: Optional[str] = None

    # Payment and banking
    payment_method: Optional[PaymentMethod] = None
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_bic: Optional[str] = None
    account_holder: Optional[str] = None

    # SEPA mandate
    sepa_mandate_reference: Optional[str] = None
    sepa_payment_type: Optional[SepaPaymentType] = None
    sepa_signature: Optional[str] = None  # data URL of the signature image
    sepa_signature_date: Optional[str] = None  # ISO date

    # GDPR
    gdpr_consent: bool = False
    gdpr_consent_date: Optional[datetime] = None

    notes: Optional[str] = None

    @property
    def is_direct_debit(self) -> bool:
        return self.payment_method == PaymentMethod.DIRECT_DEBIT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClientRegistration':
        data = dict(data)
        if data.get('payment_method'):
            data['payment_method'] = PaymentMethod(data['payment_method'])
        if data.get('sepa_payment_type'):
            data['sepa_payment_type'] = SepaPaymentType(data['sepa_payment_type'])
        if isinstance(data.get('gdpr_consent_date'), str):
            data['gdpr_consent_date'] = datetime.fromisoformat(data['gdpr_consent_date'])
        return super().from_dict(data)


class RegistrationValidationError(ValueError):
    """The submitted form has field errors; nothing was stored"""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Registration data is not valid")
        self.errors = errors


REQUIRED_FIELDS = (
    "company_name", "cif", "address", "postal_code", "city",
    "province", "country", "phone", "email", "contact_person",
)

# Fields matched by the admin listing search
SEARCH_FIELDS = ("company_name", "cif", "email", "contact_person")

_FORM_FIELDS = {
    f.name for f in dataclass_fields(ClientRegistration)
    if f.name not in ("id", "created_at", "updated_at", "sepa_mandate_reference", "gdpr_consent_date")
}
_EMAIL_RE = re.compile(r"^\S+@\S+$")
_SIGNATURE_RE = re.compile(r"^data:image/(png|jpeg);base64,[A-Za-z0-9+/=]+$")


def _clean(value: Any) -> Any:
    """Trim strings and turn blank optional values into None"""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class RegistrationManager:
    """Validates, protects and stores client registrations"""

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        cipher_provider: Callable[[], BankingDataCipher] = get_cipher,
        mandate_reference_prefix: str = "DOSK"
    ):
        self.storage = storage
        self.audit = audit_trail
        self._cipher_provider = cipher_provider
        self.mandate_reference_prefix = mandate_reference_prefix
        self.table_name = "client_registrations"

    def validate(self, form: Dict[str, Any]) -> Dict[str, str]:
        """
        Check a submitted form.

        Args:
            form: Field name to raw submitted value

        Returns:
            Field name to error message; empty when the form is acceptable
        """
        errors: Dict[str, str] = {}

        if not form.get("gdpr_consent"):
            errors["gdpr_consent"] = "Consent to personal data processing is required"

        for name in REQUIRED_FIELDS:
            if not _clean(form.get(name)):
                errors[name] = "This field is required"

        for name in ("email", "contact_email"):
            value = _clean(form.get(name))
            if value and not _EMAIL_RE.match(value):
                errors[name] = "Email address is not valid"

        method = _clean(form.get("payment_method"))
        try:
            payment_method = PaymentMethod(method) if method else None
        except ValueError:
            payment_method = None
            errors["payment_method"] = "Payment method is not valid"
        if method is None:
            errors["payment_method"] = "This field is required"

        direct_debit = payment_method == PaymentMethod.DIRECT_DEBIT

        iban_result = validate_iban(form.get("iban"), required=direct_debit)
        if not iban_result.valid:
            errors["iban"] = iban_result.error

        swift_result = validate_swift_bic(form.get("swift_bic"))
        if not swift_result.valid:
            errors["swift_bic"] = swift_result.error

        if direct_debit:
            for name in ("bank_name", "account_holder", "sepa_signature", "sepa_signature_date"):
                if not _clean(form.get(name)):
                    errors[name] = "This field is required"

            payment_type = _clean(form.get("sepa_payment_type"))
            if payment_type not in {t.value for t in SepaPaymentType}:
                errors["sepa_payment_type"] = "Choose a periodic or single payment"

            signature = _clean(form.get("sepa_signature"))
            if signature and not _SIGNATURE_RE.match(signature):
                errors["sepa_signature"] = "Signature must be a PNG or JPEG data URL"

            signature_date = _clean(form.get("sepa_signature_date"))
            if signature_date:
                try:
                    datetime.strptime(signature_date, "%Y-%m-%d")
                except ValueError:
                    errors["sepa_signature_date"] = "Date must be YYYY-MM-DD"

        return errors

    def submit(self, form: Dict[str, Any], client_ip: Optional[str] = None) -> ClientRegistration:
        """
        Validate and store a registration.

        Raises:
            RegistrationValidationError: the form has field errors
            EncryptionConfigError: banking data present but no key configured
        """
        errors = self.validate(form)
        if errors:
            logger.info(f"Registration rejected, invalid fields: {sorted(errors)}")
            raise RegistrationValidationError(errors)

        values = {name: _clean(form.get(name)) for name in _FORM_FIELDS if name in form}
        values["gdpr_consent"] = True
        values["delivery_same_as_main"] = bool(form.get("delivery_same_as_main", True))
        values["payment_method"] = PaymentMethod(values["payment_method"])
        if values["payment_method"] == PaymentMethod.DIRECT_DEBIT:
            values["sepa_payment_type"] = SepaPaymentType(values["sepa_payment_type"])
        else:
            for name in ("sepa_payment_type", "sepa_signature", "sepa_signature_date"):
                values[name] = None

        if values["delivery_same_as_main"]:
            for name in list(values):
                if name.startswith("delivery_") and name != "delivery_same_as_main":
                    values[name] = None

        iban = normalize_iban(values.get("iban")) or None
        swift_bic = normalize_swift_bic(values.get("swift_bic")) or None
        values.update(iban=None, swift_bic=None)
        if iban or swift_bic:
            values.update(encrypt_fields(self._cipher_provider(), iban=iban, swift_bic=swift_bic))

        now = datetime.now(timezone.utc)
        registration = ClientRegistration(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            gdpr_consent_date=now,
            **values
        )
        if registration.is_direct_debit:
            registration.sepa_mandate_reference = self.generate_mandate_reference(now)

        self.storage.save(self.table_name, registration.id, registration.to_dict())

        self.audit.log_event(
            AuditEventType.REGISTRATION_SUBMITTED, "registration", registration.id,
            {
                "company_name": registration.company_name,
                "payment_method": registration.payment_method,
                "mandate_reference": registration.sepa_mandate_reference,
                "client_ip": client_ip,
            }
        )
        if iban or swift_bic:
            self.audit.log_event(
                AuditEventType.BANKING_DATA_ENCRYPTED, "registration", registration.id,
                {"fields": [n for n, v in (("iban", iban), ("swift_bic", swift_bic)) if v]}
            )

        logger.info(f"Registration {registration.id} stored for {registration.company_name}")
        return registration

    def generate_mandate_reference(self, when: Optional[datetime] = None) -> str:
        """Unique SEPA mandate reference: prefix, date and a random suffix"""
        when = when or datetime.now(timezone.utc)
        return f"{self.mandate_reference_prefix}-{when:%Y%m%d}-{secrets.token_hex(4).upper()}"

    def get_registration(self, registration_id: str) -> Optional[ClientRegistration]:
        data = self.storage.load(self.table_name, registration_id)
        return ClientRegistration.from_dict(data) if data else None

    def list_registrations(self, search: Optional[str] = None) -> List[ClientRegistration]:
        """
        All registrations, newest first.

        A non-blank search term keeps the registrations whose company name,
        CIF, email or contact person contains it, ignoring case.
        """
        registrations = [ClientRegistration.from_dict(d) for d in self.storage.load_all(self.table_name)]
        term = (search or "").strip().lower()
        if term:
            registrations = [
                r for r in registrations
                if any(term in (getattr(r, name) or "").lower() for name in SEARCH_FIELDS)
            ]
        registrations.sort(key=lambda r: r.created_at, reverse=True)
        return registrations

    def count(self) -> int:
        return self.storage.count(self.table_name)
