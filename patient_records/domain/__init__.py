"""Domain core: models, validation, cache keys, ports and the error taxonomy."""
