import pytest

from easyos.easyfs.block_device import MemoryBlockDevice
from easyos.easyfs.efs import EasyFileSystem
from easyos.fs.os_inode import OpenFlags, list_apps, open_file
from easyos.mm.page_table import UserBuffer


@pytest.fixture
def root():
    device = MemoryBlockDevice(4096)
    efs = EasyFileSystem.create(device, 4096, 1)
    return efs.root_inode()


def _buf(data: bytes) -> UserBuffer:
    return UserBuffer([memoryview(bytearray(data))])


@pytest.mark.parametrize(
    "flags, expected",
    [
        (OpenFlags.RDONLY, (True, False)),
        (OpenFlags.WRONLY, (False, True)),
        (OpenFlags.RDWR, (True, True)),
        (OpenFlags.WRONLY | OpenFlags.CREATE, (False, True)),
        (OpenFlags.CREATE, (True, True)),
    ],
)
def test_read_write_modes(flags, expected):
    assert OpenFlags(flags).read_write() == expected


def test_open_missing_without_create_gives_none(root):
    assert open_file(root, "nothing", OpenFlags.RDONLY) is None


def test_create_write_then_read_back(root):
    writer = open_file(root, "hello", OpenFlags.CREATE | OpenFlags.WRONLY)
    assert writer.writable() and not writer.readable()
    assert writer.write(_buf(b"hello")) == 5
    reader = open_file(root, "hello", OpenFlags.RDONLY)
    assert reader.read_all() == b"hello"
    assert reader.read_all() == b""


def test_write_advances_offset_across_slices(root):
    f = open_file(root, "multi", OpenFlags.CREATE | OpenFlags.RDWR)
    buf = UserBuffer([memoryview(bytearray(b"abc")), memoryview(bytearray(b"def"))])
    assert f.write(buf) == 6
    out = [bytearray(4), bytearray(4)]
    reader = open_file(root, "multi", OpenFlags.RDONLY)
    assert reader.read(UserBuffer([memoryview(b) for b in out])) == 6
    assert bytes(out[0]) + bytes(out[1][:2]) == b"abcdef"


def test_create_on_existing_file_clears_it(root):
    open_file(root, "f", OpenFlags.CREATE | OpenFlags.WRONLY).write(_buf(b"data"))
    reopened = open_file(root, "f", OpenFlags.CREATE | OpenFlags.RDWR)
    assert reopened.read_all() == b""
    assert root.ls() == ["f"]


def test_trunc_clears_existing_file(root):
    open_file(root, "f", OpenFlags.CREATE | OpenFlags.WRONLY).write(_buf(b"data"))
    assert open_file(root, "f", OpenFlags.RDONLY).read_all() == b"data"
    truncated = open_file(root, "f", OpenFlags.TRUNC)
    assert truncated.read_all() == b""


def test_list_apps_prints_banner_and_names(root, capsys):
    root.create("alpha")
    root.create("beta")
    assert list_apps(root) == ["alpha", "beta"]
    lines = capsys.readouterr().out.splitlines()
    assert lines == ["/**** APPS ****", "alpha", "beta", "**************/"]