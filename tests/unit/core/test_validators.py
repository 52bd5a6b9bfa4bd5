"""Unit tests for input validators and the data quality score."""
import pytest
from datetime import date, timedelta

from careintake.core.models import Profile
from careintake.core.validators import InputValidator, data_quality_score


@pytest.mark.unit
class TestInputValidator:
    """Test input validation functions."""

    def test_validate_phone_valid(self):
        """Test phone number validation with valid inputs."""
        valid_phones = [
            ("5551234567", "5551234567"),
            ("555-123-4567", "5551234567"),
            ("(555) 123-4567", "5551234567"),
            ("+1 555 123 4567", "5551234567"),
            ("15551234567", "5551234567"),
        ]

        for phone_input, expected in valid_phones:
            is_valid, normalized = InputValidator.validate_phone_number(phone_input)
            assert is_valid, f"Failed for {phone_input}"
            assert normalized == expected

    @pytest.mark.parametrize("phone_input", ["123", "25551234567", "", None])
    def test_validate_phone_invalid(self, phone_input):
        """Test phone number validation with invalid inputs."""
        is_valid, normalized = InputValidator.validate_phone_number(phone_input)
        assert not is_valid
        assert normalized is None

    def test_validate_email(self):
        assert InputValidator.validate_email(" Jane@Example.com ") == (True, "jane@example.com")
        assert InputValidator.validate_email("jane@") == (False, None)
        assert InputValidator.validate_email("not an email") == (False, None)

    def test_validate_zip_code(self):
        assert InputValidator.validate_zip_code("89101") == (True, "89101")
        assert InputValidator.validate_zip_code("89101-1234") == (True, "89101-1234")
        assert InputValidator.validate_zip_code("8910") == (False, None)

    def test_validate_state(self):
        assert InputValidator.validate_state(" nv ") == (True, "NV")
        assert InputValidator.validate_state("ZZ") == (False, None)
        assert InputValidator.validate_state("Nevada") == (False, None)

    def test_validate_medicaid_id(self):
        assert InputValidator.validate_medicaid_id("ab-12345") == (True, "AB-12345")
        assert InputValidator.validate_medicaid_id("ABCDEFG") == (False, None)
        assert InputValidator.validate_medicaid_id("123") == (False, None)
        assert InputValidator.validate_medicaid_id("1" * 15) == (False, None)

    @pytest.mark.parametrize("dob_input,expected", [
        ("03/15/1950", "03/15/1950"),
        ("3/5/1950", "03/05/1950"),
        ("1/2/40", "01/02/1940"),
    ])
    def test_validate_date_of_birth_valid(self, dob_input, expected):
        assert InputValidator.validate_date_of_birth(dob_input) == (True, expected)

    @pytest.mark.parametrize("dob_input", [
        "02/30/1950",
        "13/01/1950",
        "01/01/1899",
        "1950-03-15",
        "",
        None,
    ])
    def test_validate_date_of_birth_invalid(self, dob_input):
        assert InputValidator.validate_date_of_birth(dob_input) == (False, None)

    def test_future_date_of_birth_rejected(self):
        tomorrow = (date.today() + timedelta(days=1)).strftime("%m/%d/%Y")

        assert InputValidator.validate_date_of_birth(tomorrow) == (False, None)


@pytest.mark.unit
class TestDataQualityScore:
    """Test the share of valid fields."""

    def test_nothing_to_validate(self):
        assert data_quality_score(Profile(first_name="Ann")) == 50

    def test_all_valid(self):
        profile = Profile(
            phone_number="+17025551234",
            email="ann@example.com",
            zip_code="89101",
            state="NV",
            date_of_birth="01/02/1940",
            medicaid_id="AB12345",
            emergency_contact_phone="7025559876",
        )

        assert data_quality_score(profile) == 100

    def test_mixed(self):
        profile = Profile(
            phone_number="7025551234",
            zip_code="89101",
            date_of_birth="13/45/1950",
        )

        assert data_quality_score(profile) == 50  # 1 of 2

    def test_owning_phone_is_not_checked(self):
        """The profile key plus a single ZIP is not enough to score."""
        profile = Profile(phone_number="+17025551234", zip_code="89101")

        assert data_quality_score(profile) == 50

    def test_single_invalid_field_stays_at_base(self):
        assert data_quality_score(Profile(email="bad")) == 50

    def test_blank_strings_are_not_checked(self):
        profile = Profile(secondary_phone="  ", email="bad", zip_code="123")

        assert data_quality_score(profile) == 0
