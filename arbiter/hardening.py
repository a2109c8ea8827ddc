"""
Arbiter Validation and Hardening Module

Validation primitives shared by the verifier, the trace builder and the CLI:

1. Error types for validation failures and broken invariants
2. A ValidationResult type that carries success or a list of errors
3. Input validators for words, byte strings, hex and step indices
4. Constant-time comparison and hashing helpers

Security Model:
    - Everything a disputing party submits is untrusted until validated
    - Party-supplied data never raises out of the verifier; it becomes a result
    - Invariant violations are programming errors and raise immediately
    - Digest comparisons use constant-time comparison

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional


WORD_SIZE = 32


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class ValidationErrors(Exception):
    """Collection of validation errors."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        messages = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Validation failed: {messages}")


class InvariantViolation(Exception):
    """Caller contract violated (e.g. memory index out of range)."""
    pass


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise ValidationErrors if validation failed."""
        if not self.is_valid:
            raise ValidationErrors(self.errors)

    @property
    def reason(self) -> str:
        return "; ".join(str(e) for e in self.errors)

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    HEX_PATTERN = re.compile(r'^[a-f0-9]*$')

    MAX_BYTES = 1 << 20

    @classmethod
    def validate_hex(cls, value: Any, field_name: str) -> ValidationResult:
        """Validate a hex string (optional 0x prefix) and decode it."""
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected hex string, got {type(value).__name__}", value)
            ])

        text = value.strip().lower()
        if text.startswith("0x"):
            text = text[2:]

        if len(text) % 2 != 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Hex string must have an even number of digits", value)
            ])
        if not cls.HEX_PATTERN.match(text):
            return ValidationResult.failure([
                ValidationError(field_name, "Contains non-hex characters", value)
            ])

        return ValidationResult.success(bytes.fromhex(text))

    @classmethod
    def validate_bytes(
        cls,
        value: Any,
        field_name: str,
        min_length: int = 0,
        max_length: Optional[int] = None,
    ) -> ValidationResult:
        """Validate a bytes-like value, accepting hex strings."""
        max_length = cls.MAX_BYTES if max_length is None else max_length
        errors = []

        if isinstance(value, str):
            decoded = cls.validate_hex(value, field_name)
            if not decoded.is_valid:
                return decoded
            value = decoded.sanitized_value

        if isinstance(value, (bytearray, memoryview)):
            value = bytes(value)

        if not isinstance(value, bytes):
            errors.append(ValidationError(field_name, f"Expected bytes, got {type(value).__name__}", value))
            return ValidationResult.failure(errors)

        if len(value) < min_length:
            errors.append(ValidationError(field_name, f"Too short (min {min_length} bytes)", len(value)))

        if len(value) > max_length:
            errors.append(ValidationError(field_name, f"Too long (max {max_length} bytes)", len(value)))

        if errors:
            return ValidationResult.failure(errors)

        return ValidationResult.success(value)

    @classmethod
    def validate_word(cls, value: Any, field_name: str = "word") -> ValidationResult:
        """Validate a single 32-byte word."""
        return cls.validate_bytes(value, field_name, min_length=WORD_SIZE, max_length=WORD_SIZE)

    @classmethod
    def validate_step(cls, value: Any, high_step: int, field_name: str = "step") -> ValidationResult:
        """Validate a step index against the inclusive upper bound."""
        # bool is an int subclass but never a meaningful step
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value < 0 or value > high_step:
            return ValidationResult.failure([
                ValidationError(field_name, f"Out of range (0..{high_step})", value)
            ])
        return ValidationResult.success(value)


# =============================================================================
# CRYPTOGRAPHIC UTILITIES
# =============================================================================

class CryptoUtils:
    """Hashing and comparison helpers."""

    @staticmethod
    def secure_compare(a: bytes, b: bytes) -> bool:
        """Constant-time comparison to prevent timing attacks."""
        return hmac.compare_digest(a, b)

    @staticmethod
    def hash(data: bytes) -> bytes:
        """The protocol hash H: SHA-256, 32-byte digest."""
        return hashlib.sha256(data).digest()

    @staticmethod
    def hash_hex(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()
