# Vault - Secure Value Generation and Strength Checking
#
# generate_secure_value: random credential from the `secrets` CSPRNG
# check_strength: 0-8 score, one point per passing check
#   ≤3 weak, ≤5 medium, ≤7 strong, 8 very-strong

import re
import secrets
import string
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

BASE_CHARSET = string.ascii_letters + string.digits
SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

MAX_GENERATED_LENGTH = 1024

# Common weak values (minimal list, compared case-insensitively)
COMMON_WEAK_VALUES = {
    "password", "password1", "password123", "passw0rd", "admin", "admin123",
    "welcome", "welcome1", "letmein", "qwerty", "qwerty123", "123456",
    "12345678", "123456789", "1234567890", "iloveyou", "abc123",
}

_REPEATED_RUN = re.compile(r"(.)\1{2,}")


def generate_secure_value(length: int = 16, include_special: bool = True) -> str:
    """
    Generate a random credential.

    Args:
        length: Number of characters (1-1024)
        include_special: Add punctuation to the alphabet

    Returns:
        Random string drawn with the `secrets` module
    """
    if not 1 <= length <= MAX_GENERATED_LENGTH:
        raise ValueError(f"length must be between 1 and {MAX_GENERATED_LENGTH}")

    alphabet = BASE_CHARSET + SPECIAL_CHARS if include_special else BASE_CHARSET
    return "".join(secrets.choice(alphabet) for _ in range(length))


# ── Individual checks ───────────────────────────────────────────────
# Each returns None on pass, or a feedback message on failure.


def check_min_length(value: str) -> Optional[str]:
    if len(value) >= 8:
        return None
    return "Use at least 8 characters"


def check_length_12(value: str) -> Optional[str]:
    if len(value) >= 12:
        return None
    return "Use 12 or more characters for a stronger value"


def check_length_16(value: str) -> Optional[str]:
    if len(value) >= 16:
        return None
    return "Use 16 or more characters for a very strong value"


def check_lowercase(value: str) -> Optional[str]:
    if re.search(r"[a-z]", value):
        return None
    return "Include lowercase letters"


def check_uppercase(value: str) -> Optional[str]:
    if re.search(r"[A-Z]", value):
        return None
    return "Include uppercase letters"


def check_digit(value: str) -> Optional[str]:
    if re.search(r"[0-9]", value):
        return None
    return "Include numbers"


def check_symbol(value: str) -> Optional[str]:
    if re.search(r"[^A-Za-z0-9]", value):
        return None
    return "Include special characters"


def check_not_common(value: str) -> Optional[str]:
    if value.lower() in COMMON_WEAK_VALUES:
        return "This value is too common"
    if _REPEATED_RUN.search(value):
        return "Avoid repeating the same character three or more times"
    return None


STRENGTH_CHECKS: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("length_8", check_min_length),
    ("length_12", check_length_12),
    ("length_16", check_length_16),
    ("lowercase", check_lowercase),
    ("uppercase", check_uppercase),
    ("digit", check_digit),
    ("symbol", check_symbol),
    ("not_common", check_not_common),
]

MAX_SCORE = len(STRENGTH_CHECKS)


@dataclass
class StrengthReport:
    score: int
    strength: str  # weak | medium | strong | very-strong
    feedback: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"score": self.score, "strength": self.strength, "feedback": list(self.feedback)}


def strength_label(score: int) -> str:
    if score <= 3:
        return "weak"
    if score <= 5:
        return "medium"
    if score <= 7:
        return "strong"
    return "very-strong"


def check_strength(value: str) -> StrengthReport:
    """Score a credential against every check in STRENGTH_CHECKS."""
    score = 0
    feedback = []
    for _name, check in STRENGTH_CHECKS:
        message = check(value)
        if message is None:
            score += 1
        else:
            feedback.append(message)
    return StrengthReport(score=score, strength=strength_label(score), feedback=feedback)
