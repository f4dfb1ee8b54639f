"""Infrastructure adapters: config, observability, stores and sinks."""
