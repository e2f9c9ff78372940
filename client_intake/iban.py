"""
IBAN and SWIFT/BIC Validation Module

Pure validation for the banking fields of the registration form. Spanish IBANs
are checked structurally and with the ISO 7064 mod-97 checksum; SWIFT/BIC codes
have no checksum and are checked structurally only.

The validators never raise for string input: every outcome is a ValidationResult.
"""

import re
from dataclasses import dataclass
from typing import Optional


IBAN_COUNTRY_CODE = "ES"
IBAN_LENGTH = 24

_WHITESPACE_RE = re.compile(r"\s+")
_SWIFT_BIC_RE = re.compile(r"^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single field"""
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> 'ValidationResult':
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> 'ValidationResult':
        return cls(valid=False, error=error)


def normalize_iban(raw: Optional[str]) -> str:
    """Strip all whitespace and uppercase"""
    if not raw:
        return ""
    return _WHITESPACE_RE.sub("", raw).upper()


def iban_checksum_remainder(iban: str) -> int:
    """
    ISO 7064 mod-97 remainder of a normalized IBAN.

    The first four characters move to the end and letters expand to two
    digits (A=10 ... Z=35). The digit string is folded one digit at a time so
    the running value never exceeds 96 * 10 + 9.

    The input must already be normalized to uppercase ASCII letters and digits;
    anything else raises ValueError.
    """
    rearranged = iban[4:] + iban[:4]
    remainder = 0
    for char in rearranged:
        if not ("0" <= char <= "9" or "A" <= char <= "Z"):
            raise ValueError(f"IBAN contains an invalid character: {char!r}")
        digits = str(ord(char) - ord("A") + 10) if char.isalpha() else char
        for digit in digits:
            remainder = (remainder * 10 + int(digit)) % 97
    return remainder


def validate_iban(raw: Optional[str], required: bool = True) -> ValidationResult:
    """
    Validate a Spanish IBAN.

    Args:
        raw: User input, spaces and case are ignored
        required: When False an empty value is accepted

    Returns:
        ValidationResult with the first failing check's message
    """
    iban = normalize_iban(raw)

    if not iban:
        return ValidationResult.fail("IBAN is required") if required else ValidationResult.ok()

    if not iban.startswith(IBAN_COUNTRY_CODE):
        return ValidationResult.fail(f"IBAN must start with {IBAN_COUNTRY_CODE} (Spain)")

    if len(iban) != IBAN_LENGTH:
        return ValidationResult.fail(
            f"IBAN must be {IBAN_LENGTH} characters long, got {len(iban)}"
        )

    # isdigit() accepts non-ASCII digits such as superscripts
    body = iban[2:]
    if not (body.isascii() and body.isdigit()):
        return ValidationResult.fail("IBAN must contain only digits after the country code")

    if iban_checksum_remainder(iban) != 1:
        return ValidationResult.fail("IBAN check digits are not valid")

    return ValidationResult.ok()


def format_iban(raw: Optional[str]) -> str:
    """Group a normalized IBAN into 4-character blocks for display"""
    iban = normalize_iban(raw)
    return " ".join(iban[i:i + 4] for i in range(0, len(iban), 4))


def mask_iban(raw: Optional[str]) -> str:
    """Display form with everything but the country, check digits and last four hidden"""
    iban = normalize_iban(raw)
    if len(iban) <= 8:
        return format_iban(iban)
    masked = iban[:4] + "*" * (len(iban) - 8) + iban[-4:]
    return format_iban(masked)


def normalize_swift_bic(raw: Optional[str]) -> str:
    """Uppercase and strip whitespace for storage"""
    if not raw:
        return ""
    return _WHITESPACE_RE.sub("", raw).upper()


def validate_swift_bic(raw: Optional[str], required: bool = False) -> ValidationResult:
    """
    Validate SWIFT/BIC structure: bank (4 letters), country (2 letters),
    location (2 alphanumerics) and an optional branch (3 alphanumerics).
    """
    code = normalize_swift_bic(raw)

    if not code:
        return ValidationResult.fail("SWIFT/BIC is required") if required else ValidationResult.ok()

    if len(code) not in (8, 11):
        return ValidationResult.fail(f"SWIFT/BIC must be 8 or 11 characters long, got {len(code)}")

    if not code.isascii() or not _SWIFT_BIC_RE.match(code):
        return ValidationResult.fail("SWIFT/BIC format is not valid")

    return ValidationResult.ok()
