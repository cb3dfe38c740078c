"""FieldRAG: hybrid retrieval over field-support logs, knowledge and internal media."""

__version__ = "0.1.0"
