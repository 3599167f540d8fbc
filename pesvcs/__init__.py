"""A small content-addressed version control system: object store, index, trees, commits and the pes command."""

__version__ = "0.1.0"