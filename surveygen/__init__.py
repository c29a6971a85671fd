"""Job-status synchronization for AI survey response generation."""

__version__ = "0.1.0"
