"""todochat — to-do app backend with a streaming AI chat client."""

__version__ = "0.1.0"
