from todo_agent.agent.providers.base import ModelClient
from todo_agent.agent.providers.claude import ClaudeClient

__all__ = ["ModelClient", "ClaudeClient"]
