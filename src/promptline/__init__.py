"""promptline — template-driven LLM completions for editing sessions."""

__version__ = "0.1.0"
