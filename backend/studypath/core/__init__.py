"""Core infrastructure: configuration, logging, database, clock and errors."""
