"""
Client Intake

Registration backend for company, banking and SEPA direct-debit mandate data,
with Spanish IBAN / SWIFT-BIC validation and AES-256-GCM protection of the
banking fields at rest.
"""

__version__ = "1.0.0"
