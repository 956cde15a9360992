from pathlib import Path

from svcboot.config import resolve_config
from svcboot.models import ServiceOptions
from svcboot.paths import plan_paths, source_file_name


def _config(formula, tmp_path, **kwargs):
    options = ServiceOptions(dir=tmp_path, **kwargs)
    return resolve_config(formula, options, environ={})


def test_layout(formula, tmp_path: Path):
    config = _config(formula, tmp_path, name="t1", platform="testos")
    paths = plan_paths(config)
    base = tmp_path.resolve()
    assert paths.data_dir == base / "data" / "t1" / "fakedb"
    assert paths.logs_dir == base / "logs" / "t1" / "fakedb"
    assert paths.log_file == base / "logs" / "t1" / "fakedb" / "logs.txt"
    assert paths.source_dir == base / "source" / "fakedb" / "1.0" / "testos"
    assert paths.source_file == paths.source_dir / "fakedb-1.0-testos.gz"
    assert paths.extract_dir == paths.source_dir / "unpacked"
    assert paths.exec_file == paths.extract_dir / "bin" / "fakedb"


def test_planning_is_deterministic_and_has_no_side_effects(formula, tmp_path: Path):
    config = _config(formula, tmp_path, name="t1", platform="testos")
    first = plan_paths(config)
    second = plan_paths(_config(formula, tmp_path, name="t1", platform="testos"))
    assert first == second
    assert list(tmp_path.iterdir()) == []


def test_source_dir_is_shared_between_instance_names(formula, tmp_path: Path):
    a = plan_paths(_config(formula, tmp_path, name="a", platform="testos"))
    b = plan_paths(_config(formula, tmp_path, name="b", platform="testos"))
    assert a.source_file == b.source_file
    assert a.data_dir != b.data_dir
    assert a.log_file != b.log_file


def test_zip_source_name(formula, tmp_path: Path):
    config = _config(formula, tmp_path, platform="zipos")
    assert source_file_name(config) == "fakedb-1.0-zipos.zip"
