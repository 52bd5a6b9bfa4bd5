"""Pattern-based profile field extraction from free-text messages.

Extraction is a declarative list of rules, each a compiled pattern plus a
function turning one match into profile fields. Every rule runs on every
message and the fragment is the union of what fired.

When two rules could claim the same characters, the earlier rule wins: each
accepted match claims its span, and later rules skip matches that overlap a
claimed span. Name comes first since it consumes the whole introduction
clause; cue-anchored rules run before the bare digit rules (zip, phone).
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from careintake.config.constants import ExtractionConfig
from careintake.core.models import ProfileFragment
from careintake.core.validators import InputValidator
from careintake.utils.logger import get_logger

logger = get_logger(__name__)

Span = Tuple[int, int]


@dataclass(frozen=True)
class ExtractionRule:
    """One (pattern, field-setter) pair."""
    name: str
    pattern: Pattern
    apply: Callable[["re.Match"], Optional[Dict[str, Any]]]


def _alternation(words) -> str:
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


def _digits(value: str) -> str:
    return re.sub(r'\D', '', value)


# -----------------------------------------------------------------------------
# Patterns
# -----------------------------------------------------------------------------

_NAME_TOKEN = r"(?!(?:%s)\b)[A-Za-z][A-Za-z'\-]*" % _alternation(ExtractionConfig.NAME_STOP_WORDS)

NAME_PATTERN = re.compile(
    r"\b(?P<cue>my name is|i['\u2019]?m|i am)[ \t]+"
    r"(?P<name>%s(?:[ \t]+%s){0,%d})" % (_NAME_TOKEN, _NAME_TOKEN, ExtractionConfig.MAX_NAME_TOKENS - 1),
    re.IGNORECASE,
)

EMERGENCY_CONTACT_PATTERN = re.compile(
    r"(?i:\bemergency(?:[ \t]+contact)?)\W*(?i:(?:is|would be|will be)\b)?\s*"
    r"(?i:my\s+)?"
    r"(?:(?P<relationship>(?i:%s))\b,?\s*)?"
    r"(?P<name>[A-Z][a-z'\-]+(?:[ \t]+[A-Z][a-z'\-]+)?)?"
    r"[\s,:\-]*(?i:(?:at|phone|number|is|cell)\b\W*)?"
    r"(?P<phone>\d{3}[-.\s]?\d{3}[-.\s]?\d{4})?"
    % _alternation(ExtractionConfig.RELATIONSHIPS)
)

MEDICAID_PATTERN = re.compile(
    r"\bmedicaid(?:\s*(?:id|number|no\.?|#))?\s*(?:\bis\b)?\s*:?\s*#?\s*"
    r"(?P<medicaid_id>[A-Za-z0-9][A-Za-z0-9\-]*)",
    re.IGNORECASE,
)

DOB_PATTERN = re.compile(
    r"\b(?:born(?:\s+on)?|dob|d\.o\.b\.?|date of birth|birthday|birth date)\b\W*"
    r"(?:is\s+)?(?P<dob>\d{1,2}/\d{1,2}/\d{2,4})\b",
    re.IGNORECASE,
)

EMAIL_PATTERN = re.compile(
    r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
)

AGE_PATTERN = re.compile(
    r"\b(?:i am|i['\u2019]?m)\s*(?P<age>\d{1,3})\s*(?:years?\s+old|yrs?\s+old|yo)\b"
    r"|\b(?P<age_short>\d{1,3})\s*yo\b",
    re.IGNORECASE,
)

# "2 appointments with Dr Smith" is not a street: the words between the
# number and the suffix may not include a break word
_STREET_TOKEN = r"(?!(?:%s)\b)[A-Za-z0-9'\-]+" % _alternation(ExtractionConfig.STREET_BREAK_WORDS)

STREET_PATTERN = re.compile(
    r"\b(?P<street>\d{1,6}(?:[ \t]+%s){1,4}?[ \t]+(?:%s))\b\.?"
    % (_STREET_TOKEN, _alternation(ExtractionConfig.STREET_SUFFIXES)),
    re.IGNORECASE,
)

UNIT_PATTERN = re.compile(
    r"\b(?:apt|apartment|unit|suite|ste)\.?\s*#?\s*(?P<unit>[A-Za-z]?\d+[A-Za-z]?)\b",
    re.IGNORECASE,
)

CITY_STATE_PATTERN = re.compile(
    r"(?:,|\b[Ii]n)[ \t]+(?P<city>[A-Z][A-Za-z]+(?:[ \t]+[A-Z][A-Za-z]+){0,2}),?[ \t]+(?P<state>[A-Z]{2})\b"
)

ZIP_PATTERN = re.compile(r"\b(?P<zip>\d{5})(?:-\d{4})?\b")

PHONE_PATTERN = re.compile(r"\b(?P<phone>\d{3}[-.]?\d{3}[-.]?\d{4})\b")

LANGUAGE_PATTERN = re.compile(
    r"\b(?:speak|speaks|prefer|language is|in)\s+(?P<language>%s)\b"
    % _alternation(ExtractionConfig.LANGUAGES),
    re.IGNORECASE,
)

CAREGIVER_GENDER_PATTERN = re.compile(
    r"\b(?P<gender>female|male|woman|man|lady)\s+(?:caregiver|aide|helper|nurse)s?\b",
    re.IGNORECASE,
)


# -----------------------------------------------------------------------------
# Field setters
# -----------------------------------------------------------------------------

def _name_fields(match) -> Optional[Dict[str, Any]]:
    cue = match.group("cue").lower()
    tokens = match.group("name").split()
    if not tokens:
        return None

    if cue != "my name is":
        # "I'm tired", "I am looking for..." are not introductions; a full
        # name is accepted in any case ("i am maria lopez")
        if tokens[0].lower() in ExtractionConfig.NOT_A_NAME:
            return None
        if len(tokens) == 1 and not tokens[0][0].isupper():
            return None

    fields: Dict[str, Any] = {"first_name": tokens[0]}
    if len(tokens) >= 2:
        fields["last_name"] = tokens[-1]
    if len(tokens) >= 3:
        fields["middle_name"] = " ".join(tokens[1:-1])
    return fields


def _emergency_contact_fields(match) -> Optional[Dict[str, Any]]:
    name = match.group("name")
    phone = match.group("phone")
    if not name and not phone:
        return None

    fields: Dict[str, Any] = {}
    if name:
        fields["emergency_contact_name"] = name
    if phone:
        fields["emergency_contact_phone"] = _digits(phone)
    if match.group("relationship"):
        fields["emergency_contact_relationship"] = match.group("relationship").lower()
    return fields


def _medicaid_fields(match) -> Optional[Dict[str, Any]]:
    value = match.group("medicaid_id")
    if not any(ch.isdigit() for ch in value):
        return None
    return {"medicaid_id": value.upper()}


def _dob_fields(match) -> Optional[Dict[str, Any]]:
    raw = match.group("dob")
    valid, normalized = InputValidator.validate_date_of_birth(raw)
    # Invalid dates are kept as given and lower the data quality score
    return {"date_of_birth": normalized if valid else raw}


def _email_fields(match) -> Optional[Dict[str, Any]]:
    return {"email": match.group(0).lower()}


def _age_fields(match) -> Optional[Dict[str, Any]]:
    age = int(match.group("age") or match.group("age_short"))
    if age > ExtractionConfig.MAX_AGE:
        return None
    return {"age": age}


def _street_fields(match) -> Optional[Dict[str, Any]]:
    return {"street_address": match.group("street").strip()}


def _unit_fields(match) -> Optional[Dict[str, Any]]:
    return {"apartment_unit": match.group("unit").upper()}


def _city_state_fields(match) -> Optional[Dict[str, Any]]:
    state = match.group("state")
    if state not in ExtractionConfig.US_STATES:
        return None
    return {"city": match.group("city"), "state": state}


def _zip_fields(match) -> Optional[Dict[str, Any]]:
    return {"zip_code": match.group("zip")}


def _phone_fields(match) -> Optional[Dict[str, Any]]:
    return {"phone_number": _digits(match.group("phone"))}


def _language_fields(match) -> Optional[Dict[str, Any]]:
    return {"language_preference": match.group("language").capitalize()}


def _caregiver_gender_fields(match) -> Optional[Dict[str, Any]]:
    gender = match.group("gender").lower()
    return {"preferred_caregiver_gender": "male" if gender in ("male", "man") else "female"}


EXTRACTION_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule("name", NAME_PATTERN, _name_fields),
    ExtractionRule("emergency_contact", EMERGENCY_CONTACT_PATTERN, _emergency_contact_fields),
    ExtractionRule("medicaid", MEDICAID_PATTERN, _medicaid_fields),
    ExtractionRule("date_of_birth", DOB_PATTERN, _dob_fields),
    ExtractionRule("email", EMAIL_PATTERN, _email_fields),
    ExtractionRule("age", AGE_PATTERN, _age_fields),
    ExtractionRule("street_address", STREET_PATTERN, _street_fields),
    ExtractionRule("apartment_unit", UNIT_PATTERN, _unit_fields),
    ExtractionRule("city_state", CITY_STATE_PATTERN, _city_state_fields),
    ExtractionRule("zip", ZIP_PATTERN, _zip_fields),
    ExtractionRule("phone", PHONE_PATTERN, _phone_fields),
    ExtractionRule("language", LANGUAGE_PATTERN, _language_fields),
    ExtractionRule("caregiver_gender", CAREGIVER_GENDER_PATTERN, _caregiver_gender_fields),
)


class FieldExtractor:
    """Runs the extraction rules over a message and builds a fragment."""

    def __init__(self, rules: Tuple[ExtractionRule, ...] = EXTRACTION_RULES):
        self.rules = rules

    def extract(self, message: Any) -> ProfileFragment:
        """Extract profile fields from a message.

        Args:
            message: Raw message text; anything that is not a string yields
                an empty fragment

        Returns:
            Fragment holding only the fields that were found
        """
        if not isinstance(message, str) or not message.strip():
            return ProfileFragment()

        fields: Dict[str, Any] = {}
        claimed: List[Span] = []

        for rule in self.rules:
            for match in rule.pattern.finditer(message):
                span = match.span()
                if span[0] == span[1] or self._overlaps(span, claimed):
                    continue
                found = rule.apply(match)
                if not found:
                    continue
                for key, value in found.items():
                    fields.setdefault(key, value)
                claimed.append(span)
                break

        if fields:
            logger.debug(
                "Fields extracted",
                extra={"event": "fields_extracted", "fields": sorted(fields)},
            )
        return ProfileFragment(**fields)

    @staticmethod
    def _overlaps(span: Span, claimed: List[Span]) -> bool:
        return any(span[0] < end and span[1] > start for start, end in claimed)


# Global singleton instance
_extractor = None


def get_field_extractor() -> FieldExtractor:
    """Get global field extractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = FieldExtractor()
    return _extractor

