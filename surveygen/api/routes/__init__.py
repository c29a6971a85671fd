from . import events, generation

__all__ = ["events", "generation"]
