[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvsix"
version = "0.1.0"
description = "A small teaching Unix file system with a write-ahead log, buffer cache, pipes, console and simple user tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "inode",
    "write-ahead log",
    "buffer cache",
    "disk image",
    "teaching",
    "operating systems",
]
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
    "Topic :: Education",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xvsix-mkfs = "xvsix.mkfs:main"
xvsix-grep = "xvsix.grep:main"
xvsix-coreutils = "xvsix.coreutils:main"
xvsix-ls = "xvsix.ls:main"

[tool.hatch.build.targets.wheel]
packages = ["xvsix"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
