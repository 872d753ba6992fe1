"""Tests for secure value generation and strength scoring."""

import pytest


class TestGenerateSecureValue:

    def test_default_length(self):
        from tiered_vault.vault.strength import generate_secure_value

        assert len(generate_secure_value()) == 16

    def test_custom_length(self):
        from tiered_vault.vault.strength import generate_secure_value

        assert len(generate_secure_value(40)) == 40

    def test_without_special_characters(self):
        from tiered_vault.vault.strength import SPECIAL_CHARS, generate_secure_value

        value = generate_secure_value(200, include_special=False)
        assert value.isalnum()
        assert not set(value) & set(SPECIAL_CHARS)

    def test_alphabet(self):
        from tiered_vault.vault.strength import BASE_CHARSET, SPECIAL_CHARS, generate_secure_value

        value = generate_secure_value(500)
        assert set(value) <= set(BASE_CHARSET + SPECIAL_CHARS)

    def test_values_differ(self):
        from tiered_vault.vault.strength import generate_secure_value

        assert len({generate_secure_value(24) for _ in range(20)}) == 20

    @pytest.mark.parametrize("length", [0, -1, 1025])
    def test_invalid_length(self, length):
        from tiered_vault.vault.strength import generate_secure_value

        with pytest.raises(ValueError):
            generate_secure_value(length)


class TestIndividualChecks:

    @pytest.mark.parametrize("check,passing,failing", [
        ("check_min_length", "abcdefgh", "abcdefg"),
        ("check_length_12", "a" * 12, "a" * 11),
        ("check_length_16", "a" * 16, "a" * 15),
        ("check_lowercase", "ABCd", "ABCD"),
        ("check_uppercase", "abcD", "abcd"),
        ("check_digit", "abc1", "abcd"),
        ("check_symbol", "abc!", "abc1"),
        ("check_not_common", "Tr0ub4dor", "Password123"),
    ])
    def test_check(self, check, passing, failing):
        from tiered_vault.vault import strength

        fn = getattr(strength, check)
        assert fn(passing) is None
        assert isinstance(fn(failing), str)

    def test_repeated_run_is_weak_pattern(self):
        from tiered_vault.vault.strength import check_not_common

        assert check_not_common("xaaay") is not None
        assert check_not_common("xaay") is None

    def test_eight_checks(self):
        from tiered_vault.vault.strength import MAX_SCORE, STRENGTH_CHECKS

        assert MAX_SCORE == 8
        assert len({name for name, _ in STRENGTH_CHECKS}) == 8


class TestCheckStrength:

    @pytest.mark.parametrize("score,label", [
        (0, "weak"), (3, "weak"), (4, "medium"), (5, "medium"),
        (6, "strong"), (7, "strong"), (8, "very-strong"),
    ])
    def test_thresholds(self, score, label):
        from tiered_vault.vault.strength import strength_label

        assert strength_label(score) == label

    def test_very_strong(self):
        from tiered_vault.vault.strength import check_strength

        report = check_strength("Xk9#mQ2$vL7@pR4!")
        assert report.score == 8
        assert report.strength == "very-strong"
        assert report.feedback == []

    def test_weak(self):
        from tiered_vault.vault.strength import check_strength

        report = check_strength("abc")
        # lowercase + not_common only
        assert report.score == 2
        assert report.strength == "weak"
        assert "Use at least 8 characters" in report.feedback

    def test_common_value_loses_a_point(self):
        from tiered_vault.vault.strength import check_strength

        # length_8, lowercase, uppercase, digit pass; common list hit
        report = check_strength("Password123")
        assert report.score == 4
        assert "This value is too common" in report.feedback

    def test_empty_value(self):
        from tiered_vault.vault.strength import check_strength

        report = check_strength("")
        assert report.score == 1
        assert report.strength == "weak"

    def test_to_dict(self):
        from tiered_vault.vault.strength import check_strength

        data = check_strength("abc").to_dict()
        assert set(data) == {"score", "strength", "feedback"}
