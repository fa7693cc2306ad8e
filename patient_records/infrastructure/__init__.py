"""Infrastructure: configuration, settings, logging, request scope and wiring."""
