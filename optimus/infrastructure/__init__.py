"""Infrastructure Layer: logging and metrics sinks."""
