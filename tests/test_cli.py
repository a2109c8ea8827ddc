"""
CLI tests.

Run with: pytest tests/test_cli.py -v
"""

import hashlib
import json

import pytest
import yaml

from arbiter.cli import EXIT_ERROR, EXIT_OK, EXIT_REJECTED, OutputFormat, format_output, main

INPUT_HEX = "6172626974657221"  # b"arbiter!"


def _run(capsys, *argv):
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


@pytest.fixture(scope="module")
def claim_file(tmp_path_factory):
    path = tmp_path_factory.mktemp("claims") / "step-1500.json"
    assert main(["trace", "--input", INPUT_HEX, "--step", "1500", "--out", str(path)]) == EXIT_OK
    return path


class TestFormatOutput:

    def test_formats(self):
        data = {"valid": True, "step": 4}
        assert json.loads(format_output(data, OutputFormat.JSON)) == data
        assert yaml.safe_load(format_output(data, OutputFormat.YAML)) == data
        assert format_output(data, OutputFormat.TEXT) == "valid: True\nstep: 4"


class TestTrace:

    def test_trace_output(self, capsys):
        code, out, _ = _run(capsys, "trace", "--input", INPUT_HEX)
        data = bytes.fromhex(INPUT_HEX)
        assert code == EXIT_OK
        assert json.loads(out)["output"] == hashlib.scrypt(data, salt=data, n=1024, r=1, p=1, dklen=32).hex()

    def test_out_needs_step(self, capsys, tmp_path):
        code, _, err = _run(capsys, "trace", "--input", INPUT_HEX, "--out", str(tmp_path / "x.json"))
        assert code == EXIT_ERROR
        assert "--step" in err

    def test_bad_hex(self, capsys):
        code, _, err = _run(capsys, "trace", "--input", "zz")
        assert code == EXIT_ERROR
        assert "input" in err


class TestVerify:

    def test_honest_claim(self, capsys, claim_file):
        code, out, _ = _run(capsys, "verify", "--claim", str(claim_file))
        assert code == EXIT_OK
        assert json.loads(out) == {"valid": True, "step": 1500, "kind": "interior", "reason": ""}

    def test_tampered_claim(self, capsys, claim_file, tmp_path):
        doc = json.loads(claim_file.read_text())
        doc["post_state"] = "%02x" % (int(doc["post_state"][:2], 16) ^ 1) + doc["post_state"][2:]
        tampered = tmp_path / "tampered.json"
        tampered.write_text(json.dumps(doc))

        code, out, _ = _run(capsys, "--format", "yaml", "verify", "--claim", str(tampered))

        assert code == EXIT_REJECTED
        assert yaml.safe_load(out)["valid"] is False

    def test_schema_error(self, capsys, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"step": 1}))
        code, _, err = _run(capsys, "verify", "--claim", str(path))
        assert code == EXIT_ERROR
        assert "Validation failed" in err

    def test_missing_file_quiet(self, capsys, tmp_path):
        code, _, err = _run(capsys, "--quiet", "verify", "--claim", str(tmp_path / "absent.json"))
        assert code == EXIT_ERROR
        assert err == ""


class TestAdmit:

    def test_admitted(self, capsys):
        code, out, _ = _run(capsys, "admit", "--output", "00" * 32, "--high-step", "2049", "--id", "d-7")
        assert code == EXIT_OK
        assert json.loads(out) == {"session_id": "d-7", "admitted": True, "reason": ""}

    def test_rejected_from_file(self, capsys, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"output": "00" * 31, "high_step": 2049}))
        code, out, _ = _run(capsys, "admit", "--session", str(path))
        assert code == EXIT_REJECTED
        assert "output" in json.loads(out)["reason"]

    def test_needs_arguments(self, capsys):
        code, _, _ = _run(capsys, "admit", "--output", "00")
        assert code == EXIT_ERROR


class TestConfigCommands:

    def test_show_uses_config_file(self, capsys, tmp_path):
        path = tmp_path / "arbiter.yaml"
        path.write_text("cli:\n  output_format: yaml\n")
        code, out, _ = _run(capsys, "--config", str(path), "config", "show")
        assert code == EXIT_OK
        assert yaml.safe_load(out)["cli"]["output_format"] == "yaml"

    def test_get(self, capsys):
        code, out, _ = _run(capsys, "config", "get", "trace.max_input_bytes")
        assert code == EXIT_OK
        assert json.loads(out)["value"] == 4096

    def test_get_unknown_path(self, capsys):
        code, _, err = _run(capsys, "config", "get", "trace.nothing")
        assert code == EXIT_ERROR
        assert "Invalid config path" in err

    def test_validate(self, capsys, monkeypatch):
        monkeypatch.setenv("ARBITER_TRACE_MAX_INPUT", "0")
        code, out, _ = _run(capsys, "config", "validate")
        assert code == EXIT_ERROR
        assert json.loads(out)["valid"] is False

    def test_schema(self, capsys):
        code, out, _ = _run(capsys, "config", "schema")
        assert code == EXIT_OK
        assert "verifier" in json.loads(out)["properties"]

    def test_no_command(self, capsys):
        code, out, _ = _run(capsys)
        assert code == EXIT_OK
        assert "usage" in out
