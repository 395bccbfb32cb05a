"""Settings, logging, latency tracking and the exception taxonomy."""
