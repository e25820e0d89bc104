"""
Framework integrations for verishell.

The PydanticAI helpers live in ``verishell.integrations.pydantic_ai`` and
require the ``pydantic-ai`` extra.
"""

from verishell.integrations.langchain import HAS_LANGCHAIN, create_langchain_tools

__all__ = ["HAS_LANGCHAIN", "create_langchain_tools"]
