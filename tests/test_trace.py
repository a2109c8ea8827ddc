"""
End-to-end trace tests.

An honest trace must verify at every one of the 2050 steps, and a single
corrupted transition must be caught at exactly that step.

Run with: pytest tests/test_trace.py -v
"""

import hashlib

import pytest

from arbiter.hardening import ValidationErrors
from arbiter.merkle import EMPTY_MEMORY_ROOT, PROOF_SIZE
from arbiter.scrypt import HIGH_STEP
from arbiter.state import STATE_SIZE, decode
from arbiter.trace import StepClaim, build_trace
from arbiter.verifier import verify_step


class TestHonestTrace:

    def test_output_matches_scrypt(self, sample_trace, sample_input):
        expected = hashlib.scrypt(sample_input, salt=sample_input, n=1024, r=1, p=1, dklen=32)
        assert sample_trace.output == expected

    def test_shape(self, sample_trace, sample_input):
        assert len(sample_trace.states) == HIGH_STEP + 2
        assert sample_trace.states[0] == sample_input
        assert all(len(s) == STATE_SIZE for s in sample_trace.states[1:HIGH_STEP + 1])
        assert set(sample_trace.proofs) == set(range(1, HIGH_STEP))
        assert all(len(p) == PROOF_SIZE for p in sample_trace.proofs.values())

    def test_memory_root_starts_empty(self, sample_trace):
        assert decode(sample_trace.states[1]).state.memory_hash == EMPTY_MEMORY_ROOT
        assert decode(sample_trace.states[2]).state.memory_hash != EMPTY_MEMORY_ROOT

    def test_input_hash_carried_through(self, sample_trace, sample_input):
        committed = hashlib.sha256(sample_input).digest()
        for raw in (sample_trace.states[1], sample_trace.states[1025], sample_trace.states[HIGH_STEP]):
            assert decode(raw).state.input_hash == committed

    def test_memory_root_frozen_during_mix(self, sample_trace):
        roots = {decode(sample_trace.states[s]).state.memory_hash for s in range(1025, HIGH_STEP + 1)}
        assert len(roots) == 1

    def test_every_step_verifies(self, sample_trace):
        failures = [
            c.step for c in sample_trace.claims()
            if not verify_step(c.step, c.pre_state, c.post_state, c.proof)
        ]
        assert failures == []

    def test_state_hashes(self, sample_trace):
        hashes = sample_trace.state_hashes()
        assert len(hashes) == HIGH_STEP + 2
        assert hashes[0] == hashlib.sha256(sample_trace.input).hexdigest()


class TestCorruptedTrace:

    @pytest.mark.parametrize("bad_step", [1, 1024, 1025, 2048])
    def test_corruption_caught_at_that_step_only(self, sample_trace, bad_step):
        states = list(sample_trace.states)
        corrupted = bytearray(states[bad_step + 1])
        corrupted[17] ^= 0x80
        states[bad_step + 1] = bytes(corrupted)

        def check(step):
            proof = sample_trace.claim(step).proof
            return verify_step(step, states[step], states[step + 1], proof)

        assert check(bad_step - 1) is True
        assert check(bad_step) is False

    def test_wrong_claimed_output(self, sample_trace):
        claim = sample_trace.claim(HIGH_STEP)
        assert verify_step(HIGH_STEP, claim.pre_state, bytes(32), claim.proof) is False


class TestClaims:

    def test_claim_boundaries(self, sample_trace, sample_input):
        assert sample_trace.claim(0).proof == b""
        assert sample_trace.claim(0).pre_state == sample_input
        assert sample_trace.claim(HIGH_STEP).proof == sample_input
        assert sample_trace.claim(HIGH_STEP).post_state == sample_trace.output

    @pytest.mark.parametrize("step", [-1, HIGH_STEP + 1, True])
    def test_claim_out_of_range(self, sample_trace, step):
        with pytest.raises(ValueError):
            sample_trace.claim(step)

    def test_dict_form(self, sample_trace):
        claim = sample_trace.claim(77)
        data = claim.to_dict()
        assert data["step"] == 77
        assert data["proof"] == claim.proof.hex()
        assert StepClaim.from_dict(data) == claim

    def test_from_dict_collects_errors(self):
        with pytest.raises(ValidationErrors) as exc:
            StepClaim.from_dict({"step": "3", "pre_state": "zz", "post_state": "abc", "proof": ""})
        assert {e.field for e in exc.value.errors} == {"step", "pre_state", "post_state"}

    def test_from_dict_keeps_out_of_range_step(self):
        claim = StepClaim.from_dict({"step": 9999, "pre_state": "", "post_state": "", "proof": ""})
        assert claim.step == 9999
        assert verify_step(claim.step, claim.pre_state, claim.post_state, claim.proof) is False


class TestBuildLimits:

    def test_input_limit(self, monkeypatch):
        monkeypatch.setenv("ARBITER_TRACE_MAX_INPUT", "8")
        with pytest.raises(ValidationErrors):
            build_trace(b"\x00" * 9)

    def test_rejects_non_bytes(self):
        with pytest.raises(ValidationErrors):
            build_trace(12345)

    @pytest.mark.slow
    def test_empty_input(self):
        trace = build_trace(b"")
        assert trace.output == hashlib.scrypt(b"", salt=b"", n=1024, r=1, p=1, dklen=32)
        assert verify_step(HIGH_STEP, *[getattr(trace.claim(HIGH_STEP), f)
                                        for f in ("pre_state", "post_state", "proof")])
