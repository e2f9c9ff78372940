"""
Pydantic schemas for API requests and responses
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


# Banking data cipher schemas
class EncryptBankingDataRequest(BaseModel):
    action: Literal["encrypt"]
    iban: Optional[str] = None
    swift_bic: Optional[str] = None


class DecryptBankingDataRequest(BaseModel):
    action: Literal["decrypt"]
    iban: Optional[str] = None
    swift_bic: Optional[str] = None


BankingDataRequest = Annotated[
    Union[EncryptBankingDataRequest, DecryptBankingDataRequest],
    Field(discriminator="action"),
]

banking_data_request_adapter = TypeAdapter(BankingDataRequest)


class BankingDataPayload(BaseModel):
    iban: Optional[str] = None
    swift_bic: Optional[str] = None


class BankingDataResponse(BaseModel):
    success: bool = True
    data: BankingDataPayload


class ErrorResponse(BaseModel):
    error: str
    fields: Optional[Dict[str, str]] = None


# Authentication schemas
class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session_id: str
    expires_at: str
    is_admin: bool


# Registration schemas
class SubmitRegistrationRequest(BaseModel):
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

    contact_person: str = ""
    contact_position: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    delivery_same_as_main: bool = True
    delivery_address: Optional[str] = None
    delivery_postal_code: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_province: Optional[str] = None
    delivery_country: Optional[str] = None
    delivery_contact_person: Optional[str] = None
    delivery_phone: Optional[str] = None

    payment_method: Optional[str] = Field(
        None, description="transferencia, pagare, efectivo or domiciliacion"
    )
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    swift_bic: Optional[str] = None
    account_holder: Optional[str] = None

    sepa_payment_type: Optional[str] = Field(None, description="periodic or single")
    sepa_signature: Optional[str] = Field(None, description="PNG or JPEG data URL")
    sepa_signature_date: Optional[str] = Field(None, description="YYYY-MM-DD")

    gdpr_consent: bool = False
    notes: Optional[str] = None


class SubmitRegistrationResponse(BaseModel):
    registration_id: str
    sepa_mandate_reference: Optional[str] = None
    notification_sent: bool
    message: str


class RegistrationSummary(BaseModel):
    id: str
    company_name: str
    cif: str
    email: str
    city: str
    payment_method: Optional[str] = None
    sepa_mandate_reference: Optional[str] = None
    created_at: str


class RegistrationListResponse(BaseModel):
    total: int
    registrations: List[RegistrationSummary]
