"""Core layer: configuration, exceptions, logging and observability."""
