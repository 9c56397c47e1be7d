"""In-process fake MAAS API server, its in-memory state, and stub HTTP servers for tests."""

__version__ = "0.1.0"