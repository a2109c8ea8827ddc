"""Merkle memory proofs for the scrypt scratchpad.

The scratchpad is 1024 slots of four 32-byte words. It is never held by the
verifier; it is committed to by a single 32-byte root (``State.memory_hash``)
and every access presents a proof:

    proof = w0 || w1 || w2 || w3 || s0 || s1 || ... || s9      (14 words, 448 bytes)

Hashing (SHA-256):
  - leaf = H(w0 || w1 || w2 || w3)
  - node = H(left || right), walking up from the leaf with sibling s_i at level i;
    bit i of the slot index says whether the running hash is the right child.

A write checks the proof against the pre-write root, then overwrites the four
data words in the same proof and recomputes the root over it. The siblings are
unchanged, so one proof both certifies the old value and yields the new root.

``MemoryTree`` is the prover-side counterpart that holds the whole scratchpad
and produces proofs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from arbiter.hardening import (
    WORD_SIZE,
    CryptoUtils,
    InvariantViolation,
    ValidationError,
    ValidationResult,
)

if TYPE_CHECKING:
    from arbiter.state import State


MEMORY_SLOTS = 1024
TREE_DEPTH = 10
SLOT_WORDS = 4
PROOF_WORDS = SLOT_WORDS + TREE_DEPTH
PROOF_SIZE = PROOF_WORDS * WORD_SIZE

ZERO_WORD = b"\x00" * WORD_SIZE


def leaf_hash(words: Sequence[bytes]) -> bytes:
    """Hash the four data words of one slot."""
    return CryptoUtils.hash(b"".join(words))


def node_hash(left: bytes, right: bytes) -> bytes:
    return CryptoUtils.hash(left + right)


def _empty_memory_root() -> bytes:
    h = leaf_hash([ZERO_WORD] * SLOT_WORDS)
    for _ in range(TREE_DEPTH):
        h = node_hash(h, h)
    return h


EMPTY_MEMORY_ROOT = _empty_memory_root()


def _require_index(index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvariantViolation(f"memory index must be an int, got {type(index).__name__}")
    if not 0 <= index < MEMORY_SLOTS:
        raise InvariantViolation(f"memory index {index} out of range (0..{MEMORY_SLOTS - 1})")


@dataclass
class ProofResult:
    """Outcome of one authenticated memory access.

    A failed result is final for the step that produced it.
    """
    ok: bool
    values: Tuple[bytes, ...] = ()
    root: bytes = b""
    reason: str = ""

    @classmethod
    def success(cls, values: Sequence[bytes] = (), root: bytes = b"") -> "ProofResult":
        return cls(ok=True, values=tuple(values), root=root)

    @classmethod
    def failure(cls, reason: str) -> "ProofResult":
        return cls(ok=False, reason=reason)


class MemoryProof:
    """Fourteen words: one slot's data followed by its sibling path."""

    __slots__ = ("words",)

    def __init__(self, words: Sequence[bytes]):
        self.words: List[bytes] = list(words)

    @classmethod
    def parse(cls, data: bytes) -> ValidationResult:
        """Split a serialized proof into words.

        The sanitized value of a successful result is the ``MemoryProof``.
        """
        if isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        if not isinstance(data, bytes):
            return ValidationResult.failure([
                ValidationError("proof", f"Expected bytes, got {type(data).__name__}")
            ])
        if len(data) != PROOF_SIZE:
            return ValidationResult.failure([
                ValidationError("proof", f"Expected {PROOF_SIZE} bytes, got {len(data)}")
            ])
        words = [data[i:i + WORD_SIZE] for i in range(0, PROOF_SIZE, WORD_SIZE)]
        return ValidationResult.success(cls(words))

    def to_bytes(self) -> bytes:
        return b"".join(self.words)

    @property
    def data(self) -> Tuple[bytes, ...]:
        return tuple(self.words[:SLOT_WORDS])

    @property
    def siblings(self) -> Tuple[bytes, ...]:
        return tuple(self.words[SLOT_WORDS:])

    def copy(self) -> "MemoryProof":
        return MemoryProof(self.words)

    def __len__(self) -> int:
        return len(self.words)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MemoryProof) and self.words == other.words

    def __repr__(self) -> str:
        return f"MemoryProof(leaf={leaf_hash(self.data).hex()[:16]}..)"


def compute_root(words: Sequence[bytes], index: int) -> bytes:
    """Fold a 14-word proof up to the root for slot ``index``."""
    h = leaf_hash(words[:SLOT_WORDS])
    for i in range(TREE_DEPTH):
        sibling = words[SLOT_WORDS + i]
        if index & 1 == 0:
            h = node_hash(h, sibling)
        else:
            h = node_hash(sibling, h)
        index >>= 1
    return h


def check_against_root(state: "State", index: int, proof: MemoryProof) -> ProofResult:
    """Authenticate ``proof`` for slot ``index`` against ``state.memory_hash``."""
    _require_index(index)

    if len(proof.words) != PROOF_WORDS:
        return ProofResult.failure(f"proof must hold {PROOF_WORDS} words, got {len(proof.words)}")
    if any(not isinstance(w, bytes) or len(w) != WORD_SIZE for w in proof.words):
        return ProofResult.failure("proof words must be 32 bytes")

    root = compute_root(proof.words, index)
    if not CryptoUtils.secure_compare(root, state.memory_hash):
        return ProofResult.failure(f"proof for slot {index} does not match memory root")
    return ProofResult.success(root=root)


def read(state: "State", index: int, proof: MemoryProof) -> ProofResult:
    """Return the slot's four words once the proof checks out. Does not mutate."""
    check = check_against_root(state, index, proof)
    if not check.ok:
        return check
    return ProofResult.success(values=proof.data, root=check.root)


def write(state: "State", index: int, values: Sequence[bytes], proof: MemoryProof) -> ProofResult:
    """Replace the slot's words and move ``state.memory_hash`` to the new root."""
    if len(values) != SLOT_WORDS or any(
        not isinstance(v, bytes) or len(v) != WORD_SIZE for v in values
    ):
        raise InvariantViolation(f"write needs {SLOT_WORDS} words of {WORD_SIZE} bytes")

    check = check_against_root(state, index, proof)
    if not check.ok:
        return check

    proof.words[:SLOT_WORDS] = list(values)
    new_root = compute_root(proof.words, index)
    state.memory_hash = new_root
    return ProofResult.success(values=values, root=new_root)


class MemoryAccessor:
    """Routes one step's memory traffic through one proof.

    The proof is bound to the first slot it is used for; touching a second slot
    with the same proof breaks the caller contract.
    """

    def __init__(self, proof: MemoryProof):
        self._proof = proof
        self._bound: Optional[int] = None

    @property
    def proof(self) -> MemoryProof:
        return self._proof

    def _bind(self, index: int) -> None:
        _require_index(index)
        if self._bound is None:
            self._bound = index
        elif self._bound != index:
            raise InvariantViolation(
                f"proof bound to slot {self._bound} cannot be reused for slot {index}"
            )

    def read(self, state: "State", index: int) -> ProofResult:
        self._bind(index)
        return read(state, index, self._proof)

    def write(self, state: "State", index: int, values: Sequence[bytes]) -> ProofResult:
        self._bind(index)
        return write(state, index, values, self._proof)


class MemoryTree:
    """Full scratchpad with every tree level, for building proofs."""

    def __init__(self):
        empty = (ZERO_WORD,) * SLOT_WORDS
        self._slots: List[Tuple[bytes, ...]] = [empty] * MEMORY_SLOTS
        level = [leaf_hash(empty)] * MEMORY_SLOTS
        self._levels: List[List[bytes]] = [level]
        while len(level) > 1:
            level = [node_hash(level[i], level[i + 1]) for i in range(0, len(level), 2)]
            self._levels.append(level)

    @property
    def root(self) -> bytes:
        return self._levels[-1][0]

    def slot(self, index: int) -> Tuple[bytes, ...]:
        _require_index(index)
        return self._slots[index]

    def proof(self, index: int) -> MemoryProof:
        _require_index(index)
        siblings = [self._levels[d][(index >> d) ^ 1] for d in range(TREE_DEPTH)]
        return MemoryProof(list(self._slots[index]) + siblings)

    def write(self, index: int, values: Sequence[bytes]) -> bytes:
        """Store ``values`` in slot ``index`` and return the new root."""
        _require_index(index)
        values = tuple(values)
        if len(values) != SLOT_WORDS or any(len(v) != WORD_SIZE for v in values):
            raise InvariantViolation(f"write needs {SLOT_WORDS} words of {WORD_SIZE} bytes")

        self._slots[index] = values
        self._levels[0][index] = leaf_hash(values)
        pos = index
        for d in range(1, TREE_DEPTH + 1):
            pos >>= 1
            below = self._levels[d - 1]
            self._levels[d][pos] = node_hash(below[2 * pos], below[2 * pos + 1])
        return self.root
