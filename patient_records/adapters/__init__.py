"""Adapters: storage (DuckDB, in-memory) and cache (in-memory, Redis) implementations of the domain ports."""
