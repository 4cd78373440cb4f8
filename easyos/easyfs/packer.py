"""Pack a directory of application binaries into a file system image."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional, Sequence

from .block_device import FileBlockDevice
from .efs import EasyFileSystem

IMAGE_NAME = "fs.img"
IMAGE_BLOCKS = 16 * 2048
INODE_BITMAP_BLOCKS = 1


def _app_name(file_name: str) -> str:
    stem, dot, _ = file_name.partition(".")
    if not dot:
        raise ValueError(f"file name without extension: {file_name!r}")
    return stem


def pack(source_dir: str | os.PathLike, target_dir: str | os.PathLike) -> list[str]:
    """Build ``target_dir/fs.img`` from the apps named in ``source_dir``.

    Each entry of ``source_dir`` names an app by its stem; the app's data is
    read from the file of that name in ``target_dir``. Returns the root listing.
    """
    apps = sorted(_app_name(entry.name) for entry in os.scandir(source_dir))
    image = os.path.join(target_dir, IMAGE_NAME)
    with FileBlockDevice(image, IMAGE_BLOCKS) as device:
        efs = EasyFileSystem.create(device, IMAGE_BLOCKS, INODE_BITMAP_BLOCKS)
        root = efs.root_inode()
        for app in apps:
            with open(os.path.join(target_dir, app), "rb") as host_file:
                data = host_file.read()
            inode = root.create(app)
            if inode is None:
                raise FileExistsError(app)
            inode.write_at(0, data)
        names = root.ls()
        efs.sync()
    return names


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="EasyFileSystem packer")
    parser.add_argument(
        "-s", "--source", required=True, help="Executable source dir(with backslash)"
    )
    parser.add_argument(
        "-t", "--target", required=True, help="Executable target dir(with backslash)"
    )
    args = parser.parse_args(argv)
    print(f"src_path = {args.source}\ntarget_path = {args.target}")
    for name in pack(args.source, args.target):
        print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())