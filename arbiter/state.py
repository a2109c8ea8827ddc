"""Step-boundary state of the scrypt computation and its wire format.

Layout (fixed, 192 bytes):

    vars[0] || vars[1] || vars[2] || vars[3] || memory_hash || input_hash

``vars`` is the 128-byte working block X of scrypt split into four words.
The verifier treats it as opaque; only the mixing function interprets it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from arbiter.hardening import WORD_SIZE, Validators

VAR_WORDS = 4
STATE_SIZE = (VAR_WORDS + 2) * WORD_SIZE


@dataclass
class State:
    vars: List[bytes] = field(default_factory=lambda: [b"\x00" * WORD_SIZE] * VAR_WORDS)
    memory_hash: bytes = b"\x00" * WORD_SIZE
    input_hash: bytes = b"\x00" * WORD_SIZE

    @property
    def block(self) -> bytes:
        """The working block as one 128-byte string."""
        return b"".join(self.vars)

    @block.setter
    def block(self, value: bytes) -> None:
        if len(value) != VAR_WORDS * WORD_SIZE:
            raise ValueError(f"block must be {VAR_WORDS * WORD_SIZE} bytes, got {len(value)}")
        self.vars = [value[i:i + WORD_SIZE] for i in range(0, len(value), WORD_SIZE)]

    def copy(self) -> "State":
        return State(vars=list(self.vars), memory_hash=self.memory_hash, input_hash=self.input_hash)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vars": [v.hex() for v in self.vars],
            "memory_hash": self.memory_hash.hex(),
            "input_hash": self.input_hash.hex(),
        }


@dataclass
class DecodeResult:
    ok: bool
    state: Optional[State] = None
    reason: str = ""


def encode(state: State) -> bytes:
    """Serialize a state. Raises ValueError if a field has the wrong width."""
    if len(state.vars) != VAR_WORDS:
        raise ValueError(f"state must carry {VAR_WORDS} vars, got {len(state.vars)}")
    parts = [*state.vars, state.memory_hash, state.input_hash]
    for part in parts:
        if len(part) != WORD_SIZE:
            raise ValueError(f"state words must be {WORD_SIZE} bytes, got {len(part)}")
    return b"".join(parts)


def decode(data: Any) -> DecodeResult:
    """Parse a serialized state; malformed input yields ``ok=False``, never an exception."""
    # hex text is accepted by validate_bytes but is not a state encoding
    if isinstance(data, str):
        return DecodeResult(ok=False, reason="state: Expected bytes, got str")

    checked = Validators.validate_bytes(data, "state", min_length=STATE_SIZE, max_length=STATE_SIZE)
    if not checked.is_valid:
        return DecodeResult(ok=False, reason=checked.reason)

    raw: bytes = checked.sanitized_value
    words = [raw[i:i + WORD_SIZE] for i in range(0, STATE_SIZE, WORD_SIZE)]
    return DecodeResult(
        ok=True,
        state=State(vars=words[:VAR_WORDS], memory_hash=words[VAR_WORDS], input_hash=words[VAR_WORDS + 1]),
    )
