"""drivergen – LLM-driven API driver generation with validation and checkpoints."""

__version__ = "0.1.0"
