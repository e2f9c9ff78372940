"""
Tests for IBAN and SWIFT/BIC validation
"""

import pytest

from client_intake.iban import (
    format_iban, iban_checksum_remainder, mask_iban, normalize_iban,
    normalize_swift_bic, validate_iban, validate_swift_bic
)


VALID_IBAN = "ES9121000418450200051332"


class TestIbanValidation:

    def test_valid_iban(self):
        result = validate_iban(VALID_IBAN)
        assert result.valid
        assert result.error is None

    def test_spaces_and_case_are_ignored(self):
        assert validate_iban("es91 2100 0418 4502 0005 1332").valid

    def test_checksum_remainder_of_valid_iban_is_one(self):
        assert iban_checksum_remainder(VALID_IBAN) == 1

    def test_required_empty(self):
        result = validate_iban("")
        assert not result.valid
        assert result.error == "IBAN is required"

    def test_optional_empty(self):
        assert validate_iban(None, required=False).valid
        assert validate_iban("   ", required=False).valid

    def test_wrong_country(self):
        result = validate_iban("DE89370400440532013000")
        assert result.error == "IBAN must start with ES (Spain)"

    def test_wrong_length(self):
        result = validate_iban("ES91210004184502000513")
        assert result.error == "IBAN must be 24 characters long, got 22"

    def test_letters_after_country_code(self):
        result = validate_iban("ES91A1000418450200051332")
        assert result.error == "IBAN must contain only digits after the country code"

    def test_bad_check_digits(self):
        result = validate_iban("ES9121000418450200051333")
        assert result.error == "IBAN check digits are not valid"

    def test_check_digits_swapped(self):
        assert not validate_iban("ES1921000418450200051332").valid

    @pytest.mark.parametrize("position", range(2, len(VALID_IBAN)))
    def test_any_single_digit_change_is_rejected(self, position):
        changed = str((int(VALID_IBAN[position]) + 1) % 10)
        mutated = VALID_IBAN[:position] + changed + VALID_IBAN[position + 1:]
        assert not validate_iban(mutated).valid

    @pytest.mark.parametrize("value", ["ES91-2100-0418-4502-0005-13", "es9121000418450200051332"])
    def test_checksum_remainder_requires_normalized_input(self, value):
        with pytest.raises(ValueError):
            iban_checksum_remainder(value)

    def test_optional_but_invalid_is_still_rejected(self):
        assert not validate_iban("ES12", required=False).valid


class TestIbanFormatting:

    def test_normalize(self):
        assert normalize_iban(" es91 2100\t0418 ") == "ES9121000418"
        assert normalize_iban(None) == ""

    def test_format_in_blocks(self):
        assert format_iban(VALID_IBAN) == "ES91 2100 0418 4502 0005 1332"

    def test_mask_hides_middle(self):
        masked = mask_iban(VALID_IBAN)
        assert masked == "ES91 **** **** **** **** 1332"
        assert "0418" not in masked


class TestSwiftBicValidation:

    @pytest.mark.parametrize("code", ["BBVAESMMXXX", "BBVAESMM", "caixesbbxxx", "CAIX ESBB"])
    def test_valid_codes(self, code):
        assert validate_swift_bic(code).valid

    def test_optional_by_default(self):
        assert validate_swift_bic("").valid

    def test_required(self):
        result = validate_swift_bic(None, required=True)
        assert result.error == "SWIFT/BIC is required"

    def test_wrong_length(self):
        result = validate_swift_bic("BBVAESM")
        assert result.error == "SWIFT/BIC must be 8 or 11 characters long, got 7"

    def test_digits_in_bank_code(self):
        result = validate_swift_bic("1BVAESMMXXX")
        assert result.error == "SWIFT/BIC format is not valid"

    def test_normalize(self):
        assert normalize_swift_bic(" bbva esmm xxx ") == "BBVAESMMXXX"
