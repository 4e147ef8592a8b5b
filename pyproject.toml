[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vdiskfs"
version = "0.1.0"
description = "A small file system on a virtual disk file: block bitmap, page cache, directories and inodes"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "virtual disk", "inode", "bitmap", "cache", "education"]
classifiers = [
    "Development Status :: 3 - Alpha",
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

[tool.hatch.build.targets.wheel]
packages = ["vdiskfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
