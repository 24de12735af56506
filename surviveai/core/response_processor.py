"""Response post-processing for display.

Removes reasoning blocks, special tokens, and function-call text that small
models emit alongside their answer.
"""

import logging
import re

logger = logging.getLogger(__name__)

THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
UNTERMINATED_THINK = re.compile(r"<think>.*", re.IGNORECASE | re.DOTALL)
THINK_OPEN = re.compile(r"<think>", re.IGNORECASE)
THINK_CLOSE = re.compile(r"</think>", re.IGNORECASE)
SPECIAL_TOKEN = re.compile(r"<\|.*?\|>")
FUNCTION_CALL_JSON = re.compile(r'\{.*"function_call".*\}', re.DOTALL)
KNOWLEDGE_TOOL_JSON = re.compile(r'\{.*"name"\s*:\s*"lookup_survival_knowledge".*\}', re.DOTALL)


def clean_response(text: str | None) -> str:
    """Strip reasoning blocks and artifacts from model output.

    Args:
        text: Raw model output (possibly partial)

    Returns:
        Display-ready text
    """
    if not text:
        return ""

    cleaned = THINK_BLOCK.sub("", text)
    # Response cut off inside a reasoning block
    cleaned = UNTERMINATED_THINK.sub("", cleaned)
    cleaned = SPECIAL_TOKEN.sub("", cleaned)
    cleaned = FUNCTION_CALL_JSON.sub("", cleaned)
    cleaned = KNOWLEDGE_TOOL_JSON.sub("", cleaned)
    return cleaned.strip()


def is_inside_think_block(text: str | None) -> bool:
    """True while more <think> tags have been opened than closed."""
    if not text:
        return False
    return len(THINK_OPEN.findall(text)) > len(THINK_CLOSE.findall(text))


class StreamDisplay:
    """Accumulates streamed tokens and decides what may be shown."""

    def __init__(self):
        self.raw = ""
        self.visible = ""

    def feed(self, token: str) -> str | None:
        """Add a token.

        Args:
            token: Next streamed token

        Returns:
            Updated display text, or None when the display should not change
        """
        self.raw += token
        if is_inside_think_block(self.raw):
            return None

        cleaned = clean_response(self.raw)
        if not cleaned or cleaned == self.visible:
            return None

        self.visible = cleaned
        return cleaned
