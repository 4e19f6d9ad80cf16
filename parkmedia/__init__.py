"""ParkLookup media ingestion and transcoding service."""

__version__ = "1.0.0"
