"""Personal knowledge-accumulation service: experience memory, patterns and retrieval-augmented chat."""

__version__ = "0.1.0"
