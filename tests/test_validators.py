"""
Tests for credential validators
"""

import pytest

from services.auth_service.validators import (
    is_strong_password, is_valid_email, is_valid_mobile, is_valid_otp,
    is_valid_signup_password, normalize_mobile,
)


class TestEmail:
    """Test email syntax check"""

    @pytest.mark.parametrize("value", ["a@b.co", "first.last@example.com", "x+tag@sub.domain.in"])
    def test_valid_addresses(self, value):
        """Test common address shapes are accepted"""
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["", "plain", "a@b", "a @b.co", "a@b .co", "@b.co", None, 42])
    def test_invalid_addresses(self, value):
        """Test malformed or non-string input is rejected without raising"""
        assert not is_valid_email(value)


class TestMobile:
    """Test mobile normalization and length check"""

    def test_normalize_strips_formatting(self):
        """Test every non-digit is removed"""
        assert normalize_mobile("+91 (98765) 432-10") == "919876543210"

    def test_normalize_non_string(self):
        """Test non-string input normalizes to an empty string"""
        assert normalize_mobile(None) == ""

    def test_ten_digits_valid(self):
        """Test the minimum digit count is accepted"""
        assert is_valid_mobile("98765 43210")

    def test_nine_digits_invalid(self):
        """Test one digit short is rejected"""
        assert not is_valid_mobile("987654321")

    def test_letters_do_not_count(self):
        """Test only digits count towards the length"""
        assert not is_valid_mobile("98765abcde")


class TestPasswords:
    """Test the two password policies"""

    def test_strong_password(self):
        """Test reset policy accepts mixed case plus digit"""
        assert is_strong_password("Abcdefg1")

    @pytest.mark.parametrize("value", ["Abcdef1", "abcdefg1", "ABCDEFG1", "Abcdefgh", None])
    def test_weak_passwords(self, value):
        """Test reset policy rejects short or single-class passwords"""
        assert not is_strong_password(value)

    def test_signup_password_matching(self):
        """Test signup policy only checks length and confirmation"""
        assert is_valid_signup_password("secret", "secret")
        assert not is_valid_signup_password("secret", "secreT")
        assert not is_valid_signup_password("short", "short")

    def test_policies_disagree(self):
        """Known inconsistency: a password valid at signup can fail at reset"""
        assert is_valid_signup_password("abcdef", "abcdef")
        assert not is_strong_password("abcdef")


class TestOtp:
    """Test one-time code format"""

    def test_six_digits(self):
        """Test exactly six ASCII digits is valid"""
        assert is_valid_otp("012345")

    @pytest.mark.parametrize("value", ["12345", "1234567", "12a456", " 123456", "١٢٣٤٥٦", None])
    def test_invalid_codes(self, value):
        """Test wrong length, non-digits and non-ASCII digits are rejected"""
        assert not is_valid_otp(value)

    def test_custom_length(self):
        """Test the configured length is honoured"""
        assert is_valid_otp("1234", length=4)
        assert not is_valid_otp("123456", length=4)


class TestNormalizeIdempotent:
    """Test normalization is stable"""

    @pytest.mark.parametrize("value", ["+91 98765-43210", "9876543210", "abc", ""])
    def test_idempotent(self, value):
        """Test normalizing twice changes nothing"""
        assert normalize_mobile(normalize_mobile(value)) == normalize_mobile(value)
