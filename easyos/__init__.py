"""Teaching operating-system toolkit: file system, memory management, pipes and devices."""

__version__ = "0.1.0"