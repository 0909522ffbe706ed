"""Text-generation backends."""

from adaptive_learning.backends.anthropic_api import AnthropicTextGenerator
from adaptive_learning.backends.base import TextGenerator
from adaptive_learning.backends.http import HttpTextGenerator

__all__ = ["AnthropicTextGenerator", "HttpTextGenerator", "TextGenerator"]
