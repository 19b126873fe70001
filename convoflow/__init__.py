"""convoflow - session context, query classification and guided conversation flows."""

__version__ = "0.1.0"
