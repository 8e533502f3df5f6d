"""A small teaching Unix file system: disk, log, inodes, files, pipes, console and tools."""

__version__ = "0.1.0"