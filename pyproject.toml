[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "easyos"
version = "0.1.0"
description = "A teaching operating-system toolkit: a simple block file system, an image packer, and models of Sv39 memory management, pipes and interrupt controllers"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "block device", "page table", "sv39", "operating system", "education"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
easyfs-pack = "easyos.easyfs.packer:main"

[tool.setuptools.packages.find]
include = ["easyos*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
