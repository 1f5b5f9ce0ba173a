"""murmur - terminal chat client with streamed, versioned assistant replies."""

__version__ = "0.1.0"
