"""Source-authoritative synchronization between a markdown task vault and a structured task store."""

__version__ = "0.1.0"
