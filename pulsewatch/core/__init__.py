"""Core configuration, logging, and domain types."""
