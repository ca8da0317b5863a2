[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "btrstream"
version = "0.1.0"
description = "Read, write and replay btrfs send streams in pure Python"
requires-python = ">=3.10"
dependencies = []
keywords = ["btrfs", "send", "receive", "snapshot", "backup", "stream"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["btrstream"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
