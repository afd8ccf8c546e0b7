"""
MindBot Relay - An orchestration service for a mental-health support chat assistant.

This package classifies the emotional tone and self-harm risk of a user message,
obtains an empathetic reply from a language-model service, and records both the
chat turn and the derived mood. Standalone mood entries can be read and appended
independently of chat.
"""

__version__ = "0.1.0"
