"""Core infrastructure: configuration, database, exceptions, LLM clients."""
