"""Input validation utilities for profile fields."""
import re
from datetime import date, datetime
from typing import Optional, Tuple

from careintake.config.constants import ExtractionConfig, ScoringConfig, ValidationConfig
from careintake.core.models import Profile
from careintake.utils.logger import get_logger

logger = get_logger(__name__)


class InputValidator:
    """Validates various types of user input."""

    @staticmethod
    def validate_phone_number(phone_input: str) -> Tuple[bool, Optional[str]]:
        """Validate and normalize a US phone number to 10 digits."""

        # Remove all non-digits
        digits = re.sub(r'[^0-9]', '', phone_input or '')

        if len(digits) == 10:
            return True, digits

        # 11 digits starting with the country code
        elif len(digits) == 11 and digits[0] == '1':
            return True, digits[1:]

        return False, None

    @staticmethod
    def validate_email(email_input: str) -> Tuple[bool, Optional[str]]:
        """Validate email address."""

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

        cleaned = (email_input or '').strip().lower()

        if re.match(email_pattern, cleaned):
            return True, cleaned

        return False, None

    @staticmethod
    def validate_zip_code(zip_input: str) -> Tuple[bool, Optional[str]]:
        """Validate US zip code."""

        # Remove all non-digits
        digits = re.sub(r'[^0-9]', '', zip_input or '')

        if len(digits) == 5:
            return True, digits

        # ZIP+4
        elif len(digits) == 9:
            return True, f"{digits[:5]}-{digits[5:]}"

        return False, None

    @staticmethod
    def validate_state(state_input: str) -> Tuple[bool, Optional[str]]:
        """Validate a two-letter US state code."""
        cleaned = (state_input or '').strip().upper()
        if cleaned in ExtractionConfig.US_STATES:
            return True, cleaned
        return False, None

    @staticmethod
    def validate_medicaid_id(medicaid_input: str) -> Tuple[bool, Optional[str]]:
        """Validate and clean a Medicaid ID."""

        # Keep alphanumerics and hyphens only
        cleaned = re.sub(r'[^A-Z0-9\-]', '', (medicaid_input or '').upper())

        if not any(ch.isdigit() for ch in cleaned):
            return False, None

        if ValidationConfig.MEDICAID_ID_MIN_LENGTH <= len(cleaned) <= ValidationConfig.MEDICAID_ID_MAX_LENGTH:
            return True, cleaned

        return False, None

    @staticmethod
    def validate_date_of_birth(dob_input: str) -> Tuple[bool, Optional[str]]:
        """Validate a MM/DD/YYYY (or M/D/YY) date of birth and normalize it."""
        match = re.fullmatch(r'\s*(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})\s*', dob_input or '')
        if not match:
            return False, None

        month, day, year = (int(part) for part in match.groups())
        if len(match.group(3)) == 2:
            # Two-digit years are always in the past
            century = 1900 if year > date.today().year % 100 else 2000
            year += century

        try:
            parsed = datetime(year, month, day).date()
        except ValueError:
            return False, None

        if parsed.year < ValidationConfig.OLDEST_BIRTH_YEAR or parsed > date.today():
            return False, None

        return True, parsed.strftime("%m/%d/%Y")


# Profile attribute -> validator used for the data quality score. The owning
# phone_number is the profile key and is not client-supplied data.
QUALITY_CHECKS = (
    ("secondary_phone", InputValidator.validate_phone_number),
    ("email", InputValidator.validate_email),
    ("zip_code", InputValidator.validate_zip_code),
    ("state", InputValidator.validate_state),
    ("date_of_birth", InputValidator.validate_date_of_birth),
    ("medicaid_id", InputValidator.validate_medicaid_id),
    ("emergency_contact_phone", InputValidator.validate_phone_number),
)


def data_quality_score(profile: Profile) -> int:
    """Share of present validatable fields that pass format validation.

    Returns:
        0-100, or the neutral base score while fewer than
        ``ScoringConfig.MIN_QUALITY_FIELDS`` fields can be validated
    """
    checked = 0
    valid = 0
    for attr, validator in QUALITY_CHECKS:
        value = getattr(profile, attr, None)
        if not isinstance(value, str) or not value.strip():
            continue
        checked += 1
        if validator(value)[0]:
            valid += 1
        else:
            logger.debug(f"Field failed validation: {attr}", extra={"field": attr})

    if checked < ScoringConfig.MIN_QUALITY_FIELDS:
        return ScoringConfig.BASE_QUALITY_SCORE

    return round(valid / checked * 100)
