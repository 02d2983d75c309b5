"""TIR Configuration Tests — CONF-001 through CONF-004."""

import json
import logging

import pytest

from tir.config import TirConfig, configure_logging, find_config, load_config
from tir.evaluator import Interpreter
from tir.operators import OperatorTable, UnsignedCompare


class TestDefaults:
    """CONF-001: defaults without a config file."""

    def test_defaults(self):
        config = TirConfig()
        assert config.unsigned_compare == "fixed64"
        assert config.max_iterations == 0
        assert config.solver_timeout_ms == 10000
        assert config.opt_level == 2

    def test_no_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr("tir.config.find_config", lambda start_dir=".": None)
        assert load_config(start_dir=str(tmp_path)) == TirConfig()


class TestLoading:
    """CONF-002: YAML and JSON config files."""

    def test_yaml(self, tmp_path):
        path = tmp_path / ".tirrc.yml"
        path.write_text("unsigned_compare: width\nmax_iterations: 50\nlog_level: debug\n")
        config = load_config(str(path))
        assert config.unsigned_compare == "width"
        assert config.max_iterations == 50
        assert config.log_level == "debug"

    def test_json(self, tmp_path):
        path = tmp_path / "tir.config.json"
        path.write_text(json.dumps({"solver_timeout_ms": 500, "opt_level": 3}))
        config = load_config(str(path))
        assert config.solver_timeout_ms == 500
        assert config.opt_level == 3

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / ".tirrc.yaml"
        path.write_text("")
        assert load_config(str(path)) == TirConfig()

    def test_find_walks_up(self, tmp_path):
        (tmp_path / ".tirrc.yml").write_text("opt_level: 1\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(str(nested)) == str(tmp_path / ".tirrc.yml")
        assert load_config(start_dir=str(nested)).opt_level == 1

    def test_priority(self, tmp_path):
        (tmp_path / ".tirrc.yml").write_text("opt_level: 1\n")
        (tmp_path / ".tirrc.json").write_text('{"opt_level": 3}')
        assert load_config(start_dir=str(tmp_path)).opt_level == 1


class TestValidation:
    """CONF-003: invalid values are rejected."""

    @pytest.mark.parametrize("content", [
        "unsigned_compare: sometimes\n",
        "max_iterations: -1\n",
        "solver_timeout_ms: 0\n",
        "opt_level: 7\n",
        "log_level: loud\n",
        "- just\n- a list\n",
    ])
    def test_invalid(self, tmp_path, content):
        path = tmp_path / ".tirrc.yml"
        path.write_text(content)
        with pytest.raises(ValueError):
            load_config(str(path))


class TestApplying:
    """CONF-004: components built from configuration."""

    def test_interpreter(self):
        interp = Interpreter.from_config(TirConfig(unsigned_compare="width", max_iterations=9))
        assert interp.max_iterations == 9
        assert interp.table.unsigned_compare == UnsignedCompare.WIDTH

    def test_interpreter_unbounded(self):
        assert Interpreter.from_config(TirConfig()).max_iterations is None

    def test_table(self):
        assert OperatorTable.from_config(TirConfig()).unsigned_compare == UnsignedCompare.FIXED64

    def test_configure_logging(self):
        configure_logging(TirConfig(log_level="debug"))
        assert logging.getLogger("tir").level == logging.DEBUG
        configure_logging(TirConfig())
        assert logging.getLogger("tir").level == logging.WARNING
