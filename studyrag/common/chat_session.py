"""
Chat Session

Rolling conversation history for non-retrieval chat. The caller (the chat
screen) owns the session and passes it in; the engine keeps no history.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class ChatSession:
    """Last `window` turns of one conversation"""
    window: int = 6
    history: List[Dict[str, str]] = field(default_factory=list)

    def add_user(self, content: str) -> None:
        self._append("user", content)

    def add_assistant(self, content: str) -> None:
        self._append("assistant", content)

    def _append(self, role: str, content: str) -> None:
        self.history.append({"role": role, "content": content})
        if len(self.history) > self.window:
            self.history = self.history[-self.window:]

    def to_messages(self) -> List[Dict[str, str]]:
        """Copy of the history in provider message format"""
        return [dict(turn) for turn in self.history]

    def reset(self) -> None:
        self.history = []
