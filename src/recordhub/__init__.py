"""RecordHub - cross-source music catalog reconciliation and indexing."""

__version__ = "0.1.0"
