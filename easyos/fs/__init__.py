"""Kernel-level files: standard streams, pipes and file-system inodes."""