"""
Registration Notification Module

Emails the back office when a registration arrives. Every user-supplied value
is HTML-escaped before it reaches the template and the IBAN is masked, so the
email never carries the full account number.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .iban import mask_iban
from .registrations import ClientRegistration


logger = logging.getLogger(__name__)


@dataclass
class EmailMessageData:
    """Outgoing email, provider independent"""
    recipient: str
    subject: str
    html_body: str
    reply_to: Optional[str] = None


class EmailProvider(ABC):
    """Abstract base class for email delivery"""

    @abstractmethod
    async def send(self, message: EmailMessageData) -> bool:
        """Send the message. Returns True if the provider accepted it."""
        pass


class LogEmailProvider(EmailProvider):
    """
    Logs emails instead of sending them; used when SMTP is not configured.

    Only the last `history` messages are kept in `sent`. The service default
    keeps none, so customer data is not retained in memory.
    """

    def __init__(self, history: int = 50):
        self.sent = deque(maxlen=history)

    async def send(self, message: EmailMessageData) -> bool:
        self.sent.append(message)
        logger.info(f"EMAIL (not sent) to {message.recipient}: {message.subject}")
        return True


class SMTPEmailProvider(EmailProvider):
    """SMTP over implicit TLS"""

    def __init__(self, host: str, port: int, username: str, password: str,
                 sender: str, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def _build(self, message: EmailMessageData) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.recipient
        email["Subject"] = message.subject
        if message.reply_to:
            email["Reply-To"] = message.reply_to
        email.set_content("Este mensaje requiere un cliente de correo compatible con HTML.")
        email.add_alternative(message.html_body, subtype="html")
        return email

    def _send_blocking(self, email: EmailMessage) -> None:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context) as smtp:
            smtp.login(self.username, self.password)
            smtp.send_message(email)

    async def send(self, message: EmailMessageData) -> bool:
        try:
            await asyncio.to_thread(self._send_blocking, self._build(message))
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {message.recipient} failed: {e}")
            return False
        logger.info(f"Registration email sent to {message.recipient}")
        return True


def _safe(value: Optional[str]) -> str:
    return html.escape(value) if value else "-"


REGISTRATION_EMAIL_TEMPLATE = """\
<html>
<body style="font-family: Arial, sans-serif; color: #1e293b;">
  <h1 style="color: #1e40af;">Nueva ficha de cliente</h1>
  <h2>Datos de la empresa</h2>
  <p><strong>Razón social:</strong> {company_name}<br>
  <strong>Nombre comercial:</strong> {commercial_name}<br>
  <strong>CIF/NIF:</strong> {cif}<br>
  <strong>Dirección:</strong> {address}, {postal_code} {city} ({province}), {country}<br>
  <strong>Teléfono:</strong> {phone} &nbsp; <strong>Móvil:</strong> {mobile}<br>
  <strong>Email:</strong> {email}<br>
  <strong>Web:</strong> {website}</p>
  <h2>Persona de contacto</h2>
  <p><strong>Nombre:</strong> {contact_person} ({contact_position})<br>
  <strong>Email:</strong> {contact_email} &nbsp; <strong>Teléfono:</strong> {contact_phone}</p>
  <h2>Dirección de entrega</h2>
  <p>{delivery}</p>
  <h2>Forma de pago</h2>
  <p><strong>Método:</strong> {payment_method}<br>
  <strong>Banco:</strong> {bank_name}<br>
  <strong>Titular:</strong> {account_holder}<br>
  <strong>IBAN:</strong> {iban}<br>
  <strong>Referencia del mandato:</strong> {mandate_reference}<br>
  <strong>Acreedor:</strong> {creditor_name}<br>
  <strong>Identificador del acreedor:</strong> {creditor_identifier}</p>
  <h2>Observaciones</h2>
  <p>{notes}</p>
  <p style="font-size: 12px; color: #64748b;">Consentimiento RGPD: {gdpr}</p>
</body>
</html>
"""


def render_registration_email(registration: ClientRegistration, creditor_name: str,
                              plain_iban: Optional[str] = None,
                              creditor_identifier: str = "") -> str:
    """
    Render the back-office notification body.

    Args:
        registration: The stored registration
        creditor_name: SEPA creditor shown next to the mandate reference
        plain_iban: Plaintext IBAN, only its masked form is rendered
        creditor_identifier: SEPA creditor identifier
    """
    r = registration
    if r.delivery_same_as_main:
        delivery = "Igual que dirección principal"
    else:
        delivery = (
            f"{_safe(r.delivery_address)}, {_safe(r.delivery_postal_code)} {_safe(r.delivery_city)} "
            f"({_safe(r.delivery_province)}), {_safe(r.delivery_country)}<br>"
            f"Contacto: {_safe(r.delivery_contact_person)} &nbsp; Teléfono: {_safe(r.delivery_phone)}"
        )

    return REGISTRATION_EMAIL_TEMPLATE.format(
        company_name=_safe(r.company_name),
        commercial_name=_safe(r.commercial_name),
        cif=_safe(r.cif),
        address=_safe(r.address),
        postal_code=_safe(r.postal_code),
        city=_safe(r.city),
        province=_safe(r.province),
        country=_safe(r.country),
        phone=_safe(r.phone),
        mobile=_safe(r.mobile),
        email=_safe(r.email),
        website=_safe(r.website),
        contact_person=_safe(r.contact_person),
        contact_position=_safe(r.contact_position),
        contact_email=_safe(r.contact_email),
        contact_phone=_safe(r.contact_phone),
        delivery=delivery,
        payment_method=_safe(r.payment_method.value if r.payment_method else None),
        bank_name=_safe(r.bank_name),
        account_holder=_safe(r.account_holder),
        iban=_safe(mask_iban(plain_iban) if plain_iban else None),
        mandate_reference=_safe(r.sepa_mandate_reference),
        creditor_name=_safe(creditor_name),
        creditor_identifier=_safe(creditor_identifier),
        notes=_safe(r.notes),
        gdpr="Sí" if r.gdpr_consent else "No",
    )


class RegistrationNotifier:
    """Sends the back-office email for new registrations"""

    def __init__(self, provider: EmailProvider, recipient: str, creditor_name: str,
                 creditor_identifier: str = ""):
        self.provider = provider
        self.recipient = recipient
        self.creditor_name = creditor_name
        self.creditor_identifier = creditor_identifier

    async def notify(self, registration: ClientRegistration,
                     plain_iban: Optional[str] = None) -> bool:
        """
        Send the notification. Delivery problems are logged and reported as
        False; they never undo the stored registration.
        """
        if not self.recipient:
            logger.warning("No notification recipient configured, skipping registration email")
            return False

        message = EmailMessageData(
            recipient=self.recipient,
            subject=f"Nueva ficha de cliente: {registration.company_name}",
            html_body=render_registration_email(
                registration, self.creditor_name, plain_iban, self.creditor_identifier
            ),
            reply_to=registration.email or None,
        )
        return await self.provider.send(message)
