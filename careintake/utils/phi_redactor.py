"""PHI (Protected Health Information) detection and redaction for HIPAA compliance.

Inbound messages are scanned before anything derived from them is persisted
or logged. Five detectors run independently, so a single text can trigger
several of them:

- Social Security Numbers (###-##-####)
- Card numbers (16 digits in groups of four)
- Email addresses
- Phone numbers (10-11 digit runs, or formatted 10-digit numbers)
- Slash-delimited dates (MM/DD/YYYY, M/D/YY)

Detection never mutates its input. Redaction is applied only on the way to
storage or a log line, never before policy classification.

References:
- HIPAA Privacy Rule: 45 CFR 164.514(b)
"""
import re
from typing import List, Optional

from careintake.core.models import PhiDetection

MASK_PARTIAL = "mask_partial"
FULL_REDACT = "full_redact"
REDACTION_MODES = (MASK_PARTIAL, FULL_REDACT)


class PHIRedactor:
    """Detects and redacts Protected Health Information (PHI) in text."""

    def __init__(self, placeholder: str = "[REDACTED]"):
        """Initialize PHI redactor.

        Args:
            placeholder: String that replaces every span in full_redact mode
        """
        self.placeholder = placeholder
        self._compile_patterns()

    def _compile_patterns(self) -> None:
        """Compile regex patterns for PHI detection."""

        # Social Security Numbers: ###-##-####
        self.ssn_pattern = re.compile(
            r'\b\d{3}-\d{2}-\d{4}\b'
        )

        # Card numbers: 16 digits, optionally grouped by 4
        self.credit_card_pattern = re.compile(
            r'\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b'
        )

        # Email addresses
        self.email_pattern = re.compile(
            r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'
        )

        # Phone numbers: any bare run of 10-11 digits, or a formatted
        # 10-digit number with an optional leading +1 and separators
        self.phone_pattern = re.compile(
            r'\b\d{10,11}\b'
            r'|(?<![\w-])(?:\+?1[-.\s]?)?(?:\(\d{3}\)\s?|\d{3}[-.\s]?)\d{3}[-.\s]?\d{4}(?![\w-])'
        )

        # Dates: MM/DD/YYYY, M/D/YY
        self.date_pattern = re.compile(
            r'\b\d{1,2}/\d{1,2}/\d{2,4}\b'
        )

        # Detector order; card numbers run before phones so grouped card
        # digits are never half-masked as a phone
        self._detectors = (
            ("ssn", self.ssn_pattern),
            ("credit_card", self.credit_card_pattern),
            ("email", self.email_pattern),
            ("phone", self.phone_pattern),
            ("date", self.date_pattern),
        )

    def detect(self, text: Optional[str]) -> List[PhiDetection]:
        """Find PHI in text without modifying it.

        Args:
            text: Text to scan

        Returns:
            One PhiDetection per detector that matched
        """
        if not text or not isinstance(text, str):
            return []

        detections = []
        for phi_type, pattern in self._detectors:
            matches = [m.group(0) for m in pattern.finditer(text)]
            if matches:
                detections.append(PhiDetection(phi_type=phi_type, matches=matches))
        return detections

    def redact(self, text: Optional[str], mode: str = MASK_PARTIAL) -> Optional[str]:
        """Redact PHI from text.

        Args:
            text: Text to redact
            mode: Redaction mode
                - "mask_partial": keep the last 4 digits of SSNs, phones and
                  cards, the first letter and domain of emails, and the year
                  of dates
                - "full_redact": replace every detected span with the
                  placeholder

        Returns:
            Redacted text
        """
        if not text or not isinstance(text, str):
            return text

        if mode not in REDACTION_MODES:
            raise ValueError(f"Unknown redaction mode: {mode}")

        if mode == FULL_REDACT:
            # Repeat until stable so no replacement can expose a new match
            redacted = text
            while True:
                previous = redacted
                for _, pattern in self._detectors:
                    redacted = pattern.sub(self.placeholder, redacted)
                if redacted == previous:
                    return redacted

        redacted = self.ssn_pattern.sub(self._mask_ssn, text)
        redacted = self.credit_card_pattern.sub(self._mask_card, redacted)
        redacted = self.email_pattern.sub(self._mask_email, redacted)
        redacted = self.phone_pattern.sub(self._mask_phone, redacted)
        redacted = self.date_pattern.sub(self._mask_date, redacted)
        return redacted

    def _mask_ssn(self, match) -> str:
        """Redact SSN, keeping the last 4 digits (e.g. "XXX-XX-6789")."""
        return "XXX-XX-" + match.group(0)[-4:]

    def _mask_card(self, match) -> str:
        """Redact card number, keeping the last 4 digits."""
        digits = re.sub(r'\D', '', match.group(0))
        return "XXXX-XXXX-XXXX-" + digits[-4:]

    def _mask_phone(self, match) -> str:
        """Redact phone number, keeping the last 4 digits (e.g. "XXX-XXX-1234")."""
        digits = re.sub(r'\D', '', match.group(0))
        return "XXX-XXX-" + digits[-4:]

    def _mask_email(self, match) -> str:
        """Redact email, keeping the first character and the domain (e.g. "j***@example.com")."""
        local, _, domain = match.group(0).partition('@')
        if not local or not domain:
            return self.placeholder
        return f"{local[0]}***@{domain}"

    def _mask_date(self, match) -> str:
        """Redact date, keeping the year (e.g. "MM/DD/1950")."""
        parts = match.group(0).split('/')
        return f"MM/DD/{parts[-1]}"


# Global singleton instance
_redactor = None


def get_phi_redactor(placeholder: str = "[REDACTED]") -> PHIRedactor:
    """Get global PHI redactor instance."""
    global _redactor
    if _redactor is None:
        _redactor = PHIRedactor(placeholder)
    return _redactor

