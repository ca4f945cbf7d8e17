"""branchmem: branching conversation memory for agent workflows."""

__version__ = "0.1.0"
