import tempfile
from pathlib import Path

import pytest

from svcboot.config import resolve_config
from svcboot.errors import UnsupportedPlatformError
from svcboot.models import ServiceOptions


def test_defaults_from_formula_and_fallbacks(formula):
    config = resolve_config(formula, ServiceOptions(platform="testos"), environ={})
    assert config.name == "default"
    assert config.port == 27111
    assert config.base_dir == (Path(tempfile.gettempdir()) / "fakedb").resolve()
    assert config.platform.name == "testos"
    assert config.extra_args == ()


def test_environment_overrides_formula_defaults(formula, tmp_path):
    env = {
        "FAKEDB_NAME": "from-env",
        "FAKEDB_PORT": "28000",
        "FAKEDB_PLATFORM": "zipos",
        "FAKEDB_DIR": str(tmp_path),
    }
    config = resolve_config(formula, None, environ=env)
    assert config.name == "from-env"
    assert config.port == 28000
    assert config.platform.name == "zipos"
    assert config.base_dir == tmp_path.resolve()


def test_explicit_options_override_environment(formula, tmp_path):
    env = {"FAKEDB_NAME": "from-env", "FAKEDB_PORT": "28000", "FAKEDB_PLATFORM": "zipos"}
    options = ServiceOptions(
        name="t1", platform="testos", dir=tmp_path, port="27222", args=["--quiet"]
    )
    config = resolve_config(formula, options, environ=env)
    assert config.name == "t1"
    assert config.port == 27222
    assert config.platform.name == "testos"
    assert config.extra_args == ("--quiet",)


def test_generic_port_variable_is_a_fallback(formula):
    options = ServiceOptions(platform="testos")
    assert resolve_config(formula, options, environ={"PORT": "3000"}).port == 3000
    env = {"PORT": "3000", "FAKEDB_PORT": "4000"}
    assert resolve_config(formula, options, environ=env).port == 4000


def test_empty_environment_values_are_ignored(formula):
    env = {"FAKEDB_NAME": "", "FAKEDB_PORT": ""}
    config = resolve_config(formula, ServiceOptions(platform="testos"), environ=env)
    assert config.name == "default"
    assert config.port == 27111


def test_unsupported_platform_fails_without_io(formula, tmp_path):
    options = ServiceOptions(platform="unsupported-os", dir=tmp_path / "base")
    with pytest.raises(UnsupportedPlatformError) as excinfo:
        resolve_config(formula, options, environ={})
    assert "unsupported-os" in str(excinfo.value)
    assert "fakedb" in str(excinfo.value)
    assert excinfo.value.available == ("testos", "zipos")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("port", ["abc", "0", "70000"])
def test_invalid_port(formula, port):
    with pytest.raises(ValueError):
        resolve_config(formula, ServiceOptions(platform="testos", port=port), environ={})
