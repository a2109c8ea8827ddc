"""
Arbiter Step Verifier

Decides whether one claimed transition of the 2049-step scrypt computation is
valid. The outer dispute game narrows a disagreement to a single step and calls
``verify_step`` exactly once; the boolean tells it which party loses.

    step 0            genesis       pre_state is the raw input
    steps 1..2048     interior      one mixing step, memory proven against the root
    step 2049         finalization  proof is the raw input, post_state the output
    anything else     out of range  always invalid

Every input here is supplied by a disputing party. Malformed encodings, wrong
proof sizes and out-of-range steps all produce an invalid verdict; nothing a
party sends can make verification raise.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from arbiter.config import get_config
from arbiter.events import (
    SessionAdmitted,
    SessionRejected,
    StepRejected,
    StepVerified,
    get_event_bus,
)
from arbiter.hardening import CryptoUtils, ValidationError, ValidationResult
from arbiter.merkle import MemoryAccessor, MemoryProof
from arbiter.observability import ArbiterLayer, get_correlation_id, get_logger
from arbiter.scrypt import (
    HIGH_STEP,
    MIXING_STEPS,
    OUTPUT_SIZE,
    final_state_to_output,
    input_to_state,
    run_step,
)
from arbiter.state import decode, encode

_log = get_logger("verifier", ArbiterLayer.VERIFIER)


class StepKind(Enum):
    """The disjoint transition kinds."""
    GENESIS = "genesis"
    INTERIOR = "interior"
    FINALIZATION = "finalization"
    OUT_OF_RANGE = "out_of_range"


def classify_step(step: Any) -> StepKind:
    if isinstance(step, bool) or not isinstance(step, int):
        return StepKind.OUT_OF_RANGE
    if step == 0:
        return StepKind.GENESIS
    if 1 <= step <= MIXING_STEPS:
        return StepKind.INTERIOR
    if step == HIGH_STEP:
        return StepKind.FINALIZATION
    return StepKind.OUT_OF_RANGE


@dataclass(frozen=True)
class StepVerdict:
    """Verdict for one claimed transition."""
    valid: bool
    step: Any
    kind: StepKind
    reason: str = ""

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "step": self.step,
            "kind": self.kind.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Session:
    """Dispute session record, owned by the outer game and read here."""
    output: bytes
    high_step: int
    session_id: str = ""


def _as_bytes(value: Any) -> Optional[bytes]:
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return None


def _reject(step: Any, kind: StepKind, reason: str) -> StepVerdict:
    return StepVerdict(valid=False, step=step, kind=kind, reason=reason)


def _accept(step: Any, kind: StepKind) -> StepVerdict:
    return StepVerdict(valid=True, step=step, kind=kind)


def _matches(computed: bytes, claimed: bytes) -> bool:
    return CryptoUtils.secure_compare(computed, claimed)


def _check_genesis(raw_input: bytes, post_state: bytes) -> StepVerdict:
    expected = encode(input_to_state(raw_input))
    if not _matches(expected, post_state):
        return _reject(0, StepKind.GENESIS, "post_state does not match the state derived from the input")
    return _accept(0, StepKind.GENESIS)


def _check_interior(step: int, pre_state: bytes, post_state: bytes, proof: bytes) -> StepVerdict:
    kind = StepKind.INTERIOR

    decoded = decode(pre_state)
    if not decoded.ok:
        return _reject(step, kind, f"undecodable pre_state: {decoded.reason}")

    parsed = MemoryProof.parse(proof)
    if not parsed.is_valid:
        return _reject(step, kind, f"malformed proof: {parsed.reason}")

    state = decoded.state
    access = run_step(state, step - 1, MemoryAccessor(parsed.sanitized_value))
    if not access.ok:
        return _reject(step, kind, f"memory proof rejected: {access.reason}")

    if not _matches(encode(state), post_state):
        return _reject(step, kind, "post_state does not match the computed state")
    return _accept(step, kind)


def _check_finalization(pre_state: bytes, post_state: bytes, proof: bytes) -> StepVerdict:
    kind = StepKind.FINALIZATION

    decoded = decode(pre_state)
    if not decoded.ok:
        return _reject(HIGH_STEP, kind, f"undecodable pre_state: {decoded.reason}")

    state = decoded.state
    if not _matches(CryptoUtils.hash(proof), state.input_hash):
        return _reject(HIGH_STEP, kind, "revealed input does not match the committed input hash")

    if not _matches(final_state_to_output(state, proof), post_state):
        return _reject(HIGH_STEP, kind, "post_state does not match the derived output")
    return _accept(HIGH_STEP, kind)


def check_step(step: Any, pre_state: Any, post_state: Any, proof: Any) -> StepVerdict:
    """Verify one transition and explain the verdict."""
    kind = classify_step(step)
    pre, post, prf = _as_bytes(pre_state), _as_bytes(post_state), _as_bytes(proof)

    if kind is StepKind.OUT_OF_RANGE:
        verdict = _reject(step, kind, f"step {step!r} outside 0..{HIGH_STEP}")
    elif pre is None or post is None or (prf is None and kind is not StepKind.GENESIS):
        verdict = _reject(step, kind, "claim fields must be bytes")
    elif kind is StepKind.GENESIS:
        verdict = _check_genesis(pre, post)
    elif kind is StepKind.INTERIOR:
        verdict = _check_interior(step, pre, post, prf)
    else:
        verdict = _check_finalization(pre, post, prf)

    _report(verdict, post)
    return verdict


def verify_step(step: Any, pre_state: Any, post_state: Any, proof: Any) -> bool:
    """Return True iff ``pre_state -> post_state`` is a valid transition at ``step``."""
    return check_step(step, pre_state, post_state, proof).valid


def _report(verdict: StepVerdict, post_state: Optional[bytes]) -> None:
    if verdict.valid:
        _log.debug("Step verified", operation="verify_step", step=verdict.step, kind=verdict.kind.value)
    else:
        _log.info(
            "Step rejected",
            operation="verify_step",
            step=verdict.step,
            kind=verdict.kind.value,
            reason=verdict.reason,
        )

    if not get_config().verifier.emit_events.get():
        return

    if verdict.valid:
        event = StepVerified(
            step=verdict.step,
            kind=verdict.kind.value,
            post_state_digest=CryptoUtils.hash_hex(post_state or b""),
            correlation_id=get_correlation_id(),
        )
    else:
        event = StepRejected(
            step=verdict.step if isinstance(verdict.step, int) else -1,
            kind=verdict.kind.value,
            reason=verdict.reason,
            correlation_id=get_correlation_id(),
        )
    get_event_bus().publish(event)


def check_session(session: Session) -> ValidationResult:
    """Admission check with reasons."""
    errors = []
    output = _as_bytes(getattr(session, "output", None))
    if output is None or len(output) != OUTPUT_SIZE:
        errors.append(ValidationError(
            "output", f"claimed output must be exactly {OUTPUT_SIZE} bytes",
            None if output is None else len(output),
        ))

    high_step = getattr(session, "high_step", None)
    if isinstance(high_step, bool) or high_step != HIGH_STEP:
        errors.append(ValidationError("high_step", f"step count must be {HIGH_STEP}", high_step))

    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success(session)


def is_initially_valid(session: Session) -> bool:
    """Gate a dispute session before any step-level arbitration."""
    result = check_session(session)
    session_id = getattr(session, "session_id", "") or ""

    if result.is_valid:
        _log.debug("Session admitted", operation="admit", session_id=session_id)
    else:
        _log.info("Session rejected", operation="admit", session_id=session_id, reason=result.reason)

    if get_config().verifier.emit_events.get():
        if result.is_valid:
            event = SessionAdmitted(session_id=session_id, high_step=HIGH_STEP)
        else:
            event = SessionRejected(session_id=session_id, reason=result.reason)
        event.correlation_id = get_correlation_id()
        get_event_bus().publish(event)

    return result.is_valid
