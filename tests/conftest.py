import io
import sys
import tarfile
import zipfile
from pathlib import Path

import httpx
import pytest

from svcboot.models import Formula, PlatformSpec

SOURCE_URL = "http://downloads.example.test/dist/fakedb-1.0-testos.tar.gz"

FAKEDB_SCRIPT = (
    "#!{python}\n"
    "import sys, time\n"
    "print('fakedb ' + ' '.join(sys.argv[1:]), flush=True)\n"
    "sys.stderr.write('fakedb ready\\n')\n"
    "sys.stderr.flush()\n"
    "time.sleep(60)\n"
)


def fakedb_script() -> bytes:
    return FAKEDB_SCRIPT.format(python=sys.executable).encode("utf-8")


def make_tarball(files: dict, wrapper: str = "fakedb-1.0") -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        top = tarfile.TarInfo(wrapper)
        top.type = tarfile.DIRTYPE
        top.mode = 0o755
        tar.addfile(top)
        for name, (data, mode) in files.items():
            info = tarfile.TarInfo(f"{wrapper}/{name}")
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_zip(files: dict, wrapper: str = "fakedb-1.0") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{wrapper}/", b"")
        for name, (data, mode) in files.items():
            info = zipfile.ZipInfo(f"{wrapper}/{name}")
            info.external_attr = (0o100000 | mode) << 16
            zf.writestr(info, data)
    return buf.getvalue()


@pytest.fixture
def formula() -> Formula:
    return Formula(
        name="fakedb",
        version="1.0",
        exec="bin/fakedb",
        exec_args="--port {port} --dbpath {data}",
        port=27111,
        platforms=(
            PlatformSpec(name="testos", source=SOURCE_URL),
            PlatformSpec(name="zipos", source="http://downloads.example.test/dist/fakedb-1.0.zip"),
        ),
    )


@pytest.fixture
def tarball() -> bytes:
    return make_tarball(
        {
            "bin/fakedb": (fakedb_script(), 0o755),
            "README": (b"fake database\n", 0o644),
        }
    )


class FakeServer:
    """Serves a fixed payload through httpx.MockTransport and counts requests."""

    def __init__(self, payload: bytes, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def server(tarball) -> FakeServer:
    return FakeServer(tarball)


def tree(root: Path) -> list:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*"))
