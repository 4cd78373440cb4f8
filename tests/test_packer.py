import os

import pytest

from easyos.easyfs.block_device import BLOCK_SZ, FileBlockDevice
from easyos.easyfs.efs import EasyFileSystem
from easyos.easyfs.packer import IMAGE_BLOCKS, main, pack


@pytest.fixture
def dirs(tmp_path):
    src = tmp_path / "src"
    tgt = tmp_path / "target"
    src.mkdir()
    tgt.mkdir()
    (src / "hello.rs").write_text("fn main() {}")
    (src / "shell.rs").write_text("fn main() {}")
    (tgt / "hello").write_bytes(b"\x7fELF hello")
    (tgt / "shell").write_bytes(bytes(range(256)) * 10)
    return src, tgt


def test_pack_builds_image(dirs):
    src, tgt = dirs
    names = pack(src, tgt)
    assert names == ["hello", "shell"]
    image = tgt / "fs.img"
    assert os.path.getsize(image) == 16 * 2048 * 512
    assert IMAGE_BLOCKS * BLOCK_SZ == os.path.getsize(image)
    with FileBlockDevice(image) as device:
        root = EasyFileSystem.open(device).root_inode()
        assert root.ls() == ["hello", "shell"]
        assert root.find("hello").read_at(0, 100) == b"\x7fELF hello"
        assert root.find("shell").read_at(0, 5000) == bytes(range(256)) * 10


def test_main_prints_listing(dirs, capsys):
    src, tgt = dirs
    assert main(["-s", str(src), "-t", str(tgt)]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == f"src_path = {src}"
    assert out[1] == f"target_path = {tgt}"
    assert out[2:] == ["hello", "shell"]


def test_source_without_extension_fails(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "noext").write_text("")
    with pytest.raises(ValueError):
        pack(src, tmp_path)


def test_main_requires_arguments():
    with pytest.raises(SystemExit):
        main([])