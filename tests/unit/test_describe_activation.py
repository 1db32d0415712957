"""Argument handling of the describe_activation developer script."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "backend" / "scripts" / "describe_activation.py"


@pytest.fixture
def script():
    module_spec = importlib.util.spec_from_file_location("describe_activation", SCRIPT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


class TestArguments:
    def test_missing_arguments_print_usage(self, script, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["describe_activation.py"])
        with pytest.raises(SystemExit) as exc:
            script.main()
        assert exc.value.code == 2
        assert "Usage:" in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [
        ["not-a-wallet", "3"],
        ["11111111111111111111111111111111", "three"],
    ])
    def test_malformed_arguments_print_usage(self, script, monkeypatch, capsys, argv):
        """Bad wallet or level exits with usage, before any RPC client is built."""
        monkeypatch.setattr("sys.argv", ["describe_activation.py"] + argv)
        monkeypatch.setattr(script.MatrixClient, "from_config",
                            lambda cfg: pytest.fail("client built for invalid input"))
        with pytest.raises(SystemExit) as exc:
            script.main()
        assert exc.value.code == 2
        out = capsys.readouterr().out
        assert "Invalid argument" in out
        assert "Usage:" in out
