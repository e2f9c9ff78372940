"""
Registration Export Module

Spreadsheet-friendly CSV export of all registrations for the back office:
UTF-8 with BOM, semicolon separated, every cell quoted, Spanish headers.
Banking fields are exported in clear, so callers must have passed the
administrator gate.
"""

import csv
import io
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from .registrations import ClientRegistration


BOM = "\ufeff"

HEADERS = [
    "Razón Social", "Nombre Comercial", "CIF", "Dirección", "C.P.", "Población",
    "Provincia", "País", "Teléfono", "Móvil", "Email", "Web",
    "Persona Contacto", "Cargo", "Email Contacto", "Tel. Contacto",
    "Dir. Entrega Igual", "Dir. Entrega", "C.P. Entrega", "Población Entrega",
    "Provincia Entrega", "País Entrega", "Contacto Entrega", "Tel. Entrega",
    "Forma de Pago", "Banco", "IBAN", "SWIFT/BIC", "Titular Cuenta",
    "Referencia Mandato", "Tipo Pago SEPA", "Fecha Firma SEPA",
    "RGPD", "Fecha RGPD", "Observaciones", "Fecha Registro",
]

DATE_FORMAT = "%d/%m/%Y %H:%M"


def _yes_no(value: bool) -> str:
    return "Sí" if value else "No"


def _date(value: Optional[datetime]) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def registration_row(registration: ClientRegistration, banking: Dict[str, str]) -> list:
    """One CSV row; banking holds the decrypted iban / swift_bic"""
    r = registration
    return [
        r.company_name, r.commercial_name or "", r.cif, r.address, r.postal_code, r.city,
        r.province, r.country, r.phone, r.mobile or "", r.email, r.website or "",
        r.contact_person, r.contact_position or "", r.contact_email or "", r.contact_phone or "",
        _yes_no(r.delivery_same_as_main), r.delivery_address or "", r.delivery_postal_code or "",
        r.delivery_city or "", r.delivery_province or "", r.delivery_country or "",
        r.delivery_contact_person or "", r.delivery_phone or "",
        r.payment_method.value if r.payment_method else "",
        r.bank_name or "", banking.get("iban", ""), banking.get("swift_bic", ""),
        r.account_holder or "",
        r.sepa_mandate_reference or "",
        r.sepa_payment_type.value if r.sepa_payment_type else "",
        r.sepa_signature_date or "",
        _yes_no(r.gdpr_consent), _date(r.gdpr_consent_date), r.notes or "",
        _date(r.created_at),
    ]


def export_registrations_csv(rows: Iterable[Tuple[ClientRegistration, Dict[str, str]]]) -> str:
    """
    Build the CSV document.

    Args:
        rows: (registration, decrypted banking fields) pairs in output order

    Returns:
        CSV text starting with a UTF-8 BOM
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)
    for registration, banking in rows:
        writer.writerow(registration_row(registration, banking))
    return BOM + buffer.getvalue()


def export_filename(now: datetime) -> str:
    return f"clientes_{now:%Y%m%d_%H%M%S}.csv"
