"""Worker-side reconciliation of application slices against an in-memory object store."""

__version__ = "1.18.0"