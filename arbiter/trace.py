"""
Arbiter Trace Builder

The honest-prover side of a dispute: runs the whole scrypt computation once,
keeping the full scratchpad in a ``MemoryTree``, and records for every step the
exact ``(pre_state, post_state, proof)`` a party submits to ``verify_step``.

    states[0]            raw input
    states[1..2049]      encoded State after each of steps 0..2048
    states[2050]         32-byte output
    proofs[s]            448-byte memory proof for interior step s (1..2048)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List

from arbiter.config import get_config
from arbiter.hardening import (
    CryptoUtils,
    InvariantViolation,
    ValidationError,
    ValidationErrors,
    Validators,
)
from arbiter.merkle import MemoryAccessor, MemoryTree
from arbiter.observability import ArbiterLayer, get_logger, timed_operation
from arbiter.scrypt import (
    HIGH_STEP,
    MIXING_STEPS,
    N,
    final_state_to_output,
    input_to_state,
    run_step,
    touched_slot,
)
from arbiter.state import encode

_log = get_logger("trace", ArbiterLayer.TRACE)


@dataclass(frozen=True)
class StepClaim:
    """The arguments of one ``verify_step`` call."""
    step: int
    pre_state: bytes
    post_state: bytes
    proof: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "pre_state": self.pre_state.hex(),
            "post_state": self.post_state.hex(),
            "proof": self.proof.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepClaim":
        """Build a claim from its hex form. Raises ValidationErrors on bad fields."""
        errors: List[ValidationError] = []
        fields: Dict[str, bytes] = {}
        for name in ("pre_state", "post_state", "proof"):
            result = Validators.validate_hex(data.get(name, ""), name)
            if result.is_valid:
                fields[name] = result.sanitized_value
            else:
                errors.extend(result.errors)

        # out-of-range steps are left to the verifier; they are a verdict, not a parse error
        step = data.get("step")
        if isinstance(step, bool) or not isinstance(step, int):
            errors.append(ValidationError("step", f"Expected integer, got {type(step).__name__}", step))

        if errors:
            raise ValidationErrors(errors)
        return cls(step=step, **fields)


class ScryptTrace:
    """Recorded states and proofs of one full run."""

    def __init__(self, data: bytes, states: List[bytes], proofs: Dict[int, bytes]):
        self.input = data
        self.states = states
        self.proofs = proofs

    @property
    def output(self) -> bytes:
        return self.states[HIGH_STEP + 1]

    def claim(self, step: int) -> StepClaim:
        """The honest claim for ``step`` (0..2049)."""
        if isinstance(step, bool) or not isinstance(step, int) or not 0 <= step <= HIGH_STEP:
            raise ValueError(f"step must be in 0..{HIGH_STEP}, got {step!r}")

        if step == 0:
            proof = b""
        elif step == HIGH_STEP:
            proof = self.input
        else:
            proof = self.proofs[step]
        return StepClaim(step=step, pre_state=self.states[step], post_state=self.states[step + 1], proof=proof)

    def claims(self) -> Iterator[StepClaim]:
        for step in range(HIGH_STEP + 1):
            yield self.claim(step)

    def state_hashes(self) -> List[str]:
        """Hex digests of every boundary state, as the outer game commits to them."""
        return [CryptoUtils.hash_hex(s) for s in self.states]


@timed_operation(_log, "build_trace")
def build_trace(data: bytes) -> ScryptTrace:
    """Run scrypt(data, data, 1024, 1, 1, 32) and record every transition."""
    limit = get_config().trace.max_input_bytes.get()
    checked = Validators.validate_bytes(data, "input", max_length=limit)
    checked.raise_if_invalid()
    data = checked.sanitized_value

    tree = MemoryTree()
    state = input_to_state(data)
    states: List[bytes] = [data, encode(state)]
    proofs: Dict[int, bytes] = {}

    for step_index in range(MIXING_STEPS):
        slot = touched_slot(state, step_index)
        proof = tree.proof(slot)
        proofs[step_index + 1] = proof.to_bytes()

        written = list(state.vars)
        result = run_step(state, step_index, MemoryAccessor(proof))
        if not result.ok:
            raise InvariantViolation(f"own proof rejected at step {step_index + 1}: {result.reason}")

        if step_index < N:
            tree.write(slot, written)
        if tree.root != state.memory_hash:
            raise InvariantViolation(f"memory root diverged at step {step_index + 1}")

        states.append(encode(state))

    states.append(final_state_to_output(state, data))
    _log.info("Trace built", operation="build_trace", input_bytes=len(data), output=states[-1].hex())
    return ScryptTrace(data, states, proofs)
