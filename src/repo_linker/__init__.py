"""repo-linker: link local git working copies to a repository catalog."""

__version__ = "0.1.0"
