"""Password complexity, reuse history and expiry rules."""

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from credwarden.auth.account import Account, PasswordHistoryEntry
from credwarden.auth.password import PasswordHasher
from credwarden.config_schema import SecurityPolicyConfig


class ViolationKind(enum.Enum):
    """Rules a candidate password can break."""

    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    MISSING_CHARACTER_CLASS = "missing_character_class"
    COMMON_PASSWORD = "common_password"
    KEYBOARD_PATTERN = "keyboard_pattern"
    REPEATED_CHARACTERS = "repeated_characters"
    SIMPLE_SEQUENCE = "simple_sequence"
    PASSWORD_REUSED = "password_reused"


class CharacterClass(enum.Enum):
    """Character classes a policy can require."""

    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DIGIT = "digit"
    SPECIAL = "special"


_CLASS_PATTERNS = {
    CharacterClass.UPPERCASE: re.compile(r"[A-Z]"),
    CharacterClass.LOWERCASE: re.compile(r"[a-z]"),
    CharacterClass.DIGIT: re.compile(r"[0-9]"),
    CharacterClass.SPECIAL: re.compile(r"[^A-Za-z0-9]"),
}

_CLASS_DESCRIPTIONS = {
    CharacterClass.UPPERCASE: "one uppercase letter (A-Z)",
    CharacterClass.LOWERCASE: "one lowercase letter (a-z)",
    CharacterClass.DIGIT: "one number (0-9)",
    CharacterClass.SPECIAL: "one special character (!@#$%^&*()_+-=[]{}|;:,.<>?)",
}

COMMON_PASSWORDS = frozenset([
    "password", "password123", "123456", "123456789", "qwerty",
    "abc123", "password1", "admin", "administrator", "root",
    "user", "guest", "test", "demo", "welcome",
])

KEYBOARD_PATTERNS = ("qwerty", "asdf", "zxcv", "12345", "abcde", "!@#$%")

_REPEATED = re.compile(r"(.)\1{3,}")
_SEQUENCE = re.compile(
    r"(?:0123|1234|2345|3456|4567|5678|6789|7890|abcd|bcde|cdef|defg|efgh|"
    r"fghi|ghij|hijk|ijkl|jklm|klmn|lmno|mnop|nopq|opqr|pqrs|qrst|rstu|stuv|"
    r"tuvw|uvwx|vwxy|wxyz)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Violation:
    """One broken rule with a user-facing message."""

    kind: ViolationKind
    message: str
    character_class: Optional[CharacterClass] = None


@dataclass
class ValidationResult:
    """Outcome of a complexity check, listing every violated rule."""

    violations: List[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a password change check. Accepted when nothing is violated."""

    violations: Sequence[Violation] = ()

    @property
    def accepted(self) -> bool:
        return not self.violations

    @property
    def kinds(self) -> List[ViolationKind]:
        return [v.kind for v in self.violations]

    @property
    def messages(self) -> List[str]:
        return [v.message for v in self.violations]


def required_classes(config: SecurityPolicyConfig) -> List[CharacterClass]:
    """Character classes enabled by the policy."""
    enabled = {
        CharacterClass.UPPERCASE: config.password_require_uppercase,
        CharacterClass.LOWERCASE: config.password_require_lowercase,
        CharacterClass.DIGIT: config.password_require_numbers,
        CharacterClass.SPECIAL: config.password_require_special,
    }
    return [cls for cls, on in enabled.items() if on]


class PasswordPolicyEngine:
    """Evaluates candidate passwords against a SecurityPolicyConfig."""

    def __init__(self, hasher: Optional[PasswordHasher] = None):
        self.hasher = hasher or PasswordHasher()

    def validate_complexity(
        self, candidate: str, config: SecurityPolicyConfig
    ) -> ValidationResult:
        """Check length and character-class rules.

        Every violated rule is reported, not just the first one, so the
        caller can show complete feedback.
        """
        result = ValidationResult()

        if len(candidate) < config.password_min_length:
            result.violations.append(Violation(
                ViolationKind.TOO_SHORT,
                f"Password must be at least {config.password_min_length} characters long",
            ))
        if len(candidate) > config.password_max_length:
            result.violations.append(Violation(
                ViolationKind.TOO_LONG,
                f"Password cannot exceed {config.password_max_length} characters",
            ))

        for cls in required_classes(config):
            if not _CLASS_PATTERNS[cls].search(candidate):
                result.violations.append(Violation(
                    ViolationKind.MISSING_CHARACTER_CLASS,
                    f"Password must contain at least {_CLASS_DESCRIPTIONS[cls]}",
                    character_class=cls,
                ))

        if config.reject_weak_patterns:
            result.violations.extend(_weak_pattern_violations(candidate))

        return result

    def check_history(
        self,
        candidate: str,
        history: Sequence[PasswordHistoryEntry],
        hasher: Optional[PasswordHasher] = None,
    ) -> bool:
        """Return True (reject) if the candidate matches any history entry.

        Every entry is checked; there is no early exit on a match.
        """
        hasher = hasher or self.hasher
        reused = False
        for entry in history:
            if hasher.verify(candidate, entry.salt, entry.password_hash, entry.iterations):
                reused = True
        return reused

    def check_expiry(
        self,
        last_changed: Optional[datetime],
        expiry_days: int,
        now: datetime,
    ) -> bool:
        """Return True if a password last changed at last_changed has expired.

        An expiry of 0 days disables aging. A password with no recorded
        change time counts as expired.
        """
        if expiry_days <= 0:
            return False
        if last_changed is None:
            return True
        return now - last_changed >= timedelta(days=expiry_days)

    def is_allowed_change(
        self,
        candidate: str,
        account: Account,
        history: Sequence[PasswordHistoryEntry],
        config: SecurityPolicyConfig,
        now: datetime,
    ) -> PolicyDecision:
        """Decide whether the account may switch to the candidate password.

        The current password and the most recent password_history_count
        history entries are off limits. A history count of 0 turns reuse
        checks off.
        """
        violations = list(self.validate_complexity(candidate, config).violations)

        limit = config.password_history_count
        if limit > 0:
            retained = list(history)[:limit]
            reused_current = self.hasher.verify(
                candidate, account.password_salt, account.password_hash, account.iterations
            )
            if self.check_history(candidate, retained) or reused_current:
                violations.append(Violation(
                    ViolationKind.PASSWORD_REUSED,
                    f"Password cannot match your current password or any of your "
                    f"last {limit} previous passwords",
                ))

        return PolicyDecision(violations=tuple(violations))

    def days_until_expiry(
        self, account: Account, config: SecurityPolicyConfig, now: datetime
    ) -> Optional[int]:
        """Whole days left before the password expires.

        Returns 0 on the last day before expiry, and None when aging is
        disabled, no change time is recorded, or the password has already
        expired.
        """
        if config.password_expiry_days <= 0 or account.password_changed_at is None:
            return None
        expires_at = account.password_changed_at + timedelta(days=config.password_expiry_days)
        if now >= expires_at:
            return None
        return (expires_at - now).days

    def must_change_password(
        self, account: Account, config: SecurityPolicyConfig, now: datetime
    ) -> bool:
        return account.must_change_password or self.check_expiry(
            account.password_changed_at, config.password_expiry_days, now
        )

    def requirements_text(self, config: SecurityPolicyConfig) -> List[str]:
        """Human-readable description of the active policy."""
        text = [f"Must be at least {config.password_min_length} characters long"]
        for cls in required_classes(config):
            text.append(f"Must contain at least {_CLASS_DESCRIPTIONS[cls]}")
        if config.password_history_count > 0:
            text.append(
                f"Cannot match the current password or any of the last "
                f"{config.password_history_count} previous passwords"
            )
        if config.password_expiry_days > 0:
            text.append(f"Must be changed every {config.password_expiry_days} days")
        return text


def _weak_pattern_violations(candidate: str) -> List[Violation]:
    violations = []
    lowered = candidate.lower()

    if lowered in COMMON_PASSWORDS:
        violations.append(Violation(
            ViolationKind.COMMON_PASSWORD,
            "Password is too common and easily guessable",
        ))
    if any(pattern in lowered for pattern in KEYBOARD_PATTERNS):
        violations.append(Violation(
            ViolationKind.KEYBOARD_PATTERN,
            "Password contains keyboard patterns that are easily guessable",
        ))
    if _REPEATED.search(candidate):
        violations.append(Violation(
            ViolationKind.REPEATED_CHARACTERS,
            "Password cannot contain more than 3 repeated characters in a row",
        ))
    if _SEQUENCE.search(candidate):
        violations.append(Violation(
            ViolationKind.SIMPLE_SEQUENCE,
            "Password cannot contain simple sequences (1234, abcd, etc.)",
        ))
    return violations
