"""
Scrypt Step Function

scrypt(P, S=P, N=1024, r=1, p=1, dkLen=32) cut into 2049 verifiable transitions:

    step 0             genesis       X = PBKDF2-SHA256(P, P, 1, 128)
    steps 1..1024      fill          V[i] = X;  X = BlockMix(X)          (one write)
    steps 1025..2048   mix           j = Integerify(X) mod N
                                     X = BlockMix(X xor V[j])            (one read)
    step 2049          finalization  out = PBKDF2-SHA256(P, X, 1, 32)

The scratchpad V is never materialized here: every access goes through a
memory accessor carrying a Merkle proof against ``State.memory_hash``.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from arbiter.hardening import CryptoUtils, InvariantViolation
from arbiter.merkle import EMPTY_MEMORY_ROOT, MEMORY_SLOTS, ProofResult
from arbiter.salsa import MIX_BLOCK, block_mix, integerify, xor_bytes
from arbiter.state import State

N = MEMORY_SLOTS
MIXING_STEPS = 2 * N
HIGH_STEP = MIXING_STEPS + 1
OUTPUT_SIZE = 32


class MemoryAccess(Protocol):
    def read(self, state: State, index: int) -> ProofResult: ...

    def write(self, state: State, index: int, values: Sequence[bytes]) -> ProofResult: ...


def pbkdf2_sha256(password: bytes, salt: bytes, length: int) -> bytes:
    """Single-iteration PBKDF2-HMAC-SHA256, as scrypt uses it."""
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=length, salt=salt, iterations=1)
    return kdf.derive(password)


def input_to_state(data: bytes) -> State:
    """Genesis: derive the first working block and commit to ``data``."""
    data = bytes(data)
    state = State(memory_hash=EMPTY_MEMORY_ROOT, input_hash=CryptoUtils.hash(data))
    state.block = pbkdf2_sha256(data, data, MIX_BLOCK)
    return state


def touched_slot(state: State, step_index: int) -> int:
    """The scratchpad slot mixing step ``step_index`` reads or writes."""
    if step_index < N:
        return step_index
    return integerify(state.block) % N


def run_step(state: State, step_index: int, memory: MemoryAccess) -> ProofResult:
    """Advance ``state`` by one mixing step.

    On a failed memory access the failure is returned and the working block is
    left untouched.
    """
    if isinstance(step_index, bool) or not isinstance(step_index, int) or not 0 <= step_index < MIXING_STEPS:
        raise InvariantViolation(f"mixing step index {step_index!r} out of range (0..{MIXING_STEPS - 1})")

    block = state.block
    slot = touched_slot(state, step_index)

    if step_index < N:
        result = memory.write(state, slot, list(state.vars))
        if not result.ok:
            return result
        state.block = block_mix(block)
    else:
        result = memory.read(state, slot)
        if not result.ok:
            return result
        state.block = block_mix(xor_bytes(block, b"".join(result.values)))
    return result


def final_state_to_output(state: State, data: bytes) -> bytes:
    """Finalization: the 32-byte scrypt output for input ``data``."""
    return pbkdf2_sha256(bytes(data), state.block, OUTPUT_SIZE)
