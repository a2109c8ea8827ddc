"""
Arbiter: Scrypt Step Verification Engine

Settles a dispute about a scrypt(P, P, 1024, 1, 1, 32) evaluation by checking
one step of its 2049-step transition sequence, once an outer bisection game
has narrowed the disagreement down to that step.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                        STEP VERIFICATION ENGINE                          │
    │                                                                          │
    │  ENTRY POINTS                                                           │
    │    verifier.py    verify_step / check_step / is_initially_valid         │
    │                                                                          │
    │  TRANSITIONS                                                            │
    │    scrypt.py      genesis, mixing step, finalization                    │
    │    salsa.py       Salsa20/8 core and BlockMix                           │
    │    state.py       192-byte state codec                                  │
    │                                                                          │
    │  MEMORY                                                                 │
    │    merkle.py      14-word proofs against a 1024-slot memory root        │
    │                                                                          │
    │  PROVER SIDE                                                            │
    │    trace.py       Full run with a claim for every step                  │
    │                                                                          │
    │  SUPPORT                                                                │
    │    hardening.py   Validation errors and result types                    │
    │    config.py      YAML / environment configuration                      │
    │    observability.py  Structured logging                                 │
    │    events.py      Verdict notifications                                 │
    │    schema.py      Claim / session JSON Schemas                          │
    │    cli.py         Command-line interface                                │
    └─────────────────────────────────────────────────────────────────────────┘

Design Principles
─────────────────

    Fail-Closed Verdicts: anything a party sends that cannot be parsed or
    proven makes the claimed step invalid. Verification never raises on
    party-supplied data.

    Bounded Work: a verdict costs at most one BlockMix, one 10-level Merkle
    walk (twice for writes) and two single-iteration PBKDF2 calls.

    No Shared State: every proof and state is built fresh for one call.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy import of the public API on first access."""

    if name in ("verify_step", "check_step", "is_initially_valid", "check_session",
                "Session", "StepVerdict", "StepKind", "classify_step"):
        from arbiter import verifier
        return getattr(verifier, name)

    if name in ("State", "encode", "decode", "DecodeResult", "STATE_SIZE"):
        from arbiter import state
        return getattr(state, name)

    if name in ("MemoryProof", "MemoryTree", "MemoryAccessor", "ProofResult",
                "compute_root", "check_against_root", "read", "write",
                "EMPTY_MEMORY_ROOT"):
        from arbiter import merkle
        return getattr(merkle, name)

    if name in ("input_to_state", "run_step", "final_state_to_output", "HIGH_STEP"):
        from arbiter import scrypt
        return getattr(scrypt, name)

    if name in ("build_trace", "ScryptTrace", "StepClaim"):
        from arbiter import trace
        return getattr(trace, name)

    raise AttributeError(f"module 'arbiter' has no attribute '{name}'")
