"""Ordered, append-only conversation log.

The log is what every backend call receives. Turns are immutable once
appended; the single exception is the in-place rewrite of the coding-assistant
system prompt when the backend or model changes.
"""

from collections.abc import Iterator

from exa_agent.orchestrator.types import Role, Turn


class ConversationInvariantError(ValueError):
    """Raised when an append would break the shape of the log."""

    pass


class ConversationLog:
    """Append-only list of turns that always starts with a system turn.

    Args:
        system_prompt: Content of the mandatory first system turn.
    """

    def __init__(self, system_prompt: str) -> None:
        self._turns: list[Turn] = [Turn.system(system_prompt)]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> tuple[Turn, ...]:
        """Snapshot of the log."""
        return tuple(self._turns)

    @property
    def last(self) -> Turn:
        return self._turns[-1]

    def system_turns(self) -> list[Turn]:
        return [t for t in self._turns if t.role == Role.SYSTEM]

    def append(self, turn: Turn) -> None:
        """Append a turn.

        Tool turns must answer a call of the assistant turn they follow, and
        each call is answered at most once.

        Raises:
            ConversationInvariantError: If the turn does not fit the log.
        """
        if turn.role == Role.TOOL:
            self._check_tool_turn(turn)
        self._turns.append(turn)

    def _check_tool_turn(self, turn: Turn) -> None:
        answered: set[str] = set()
        for previous in reversed(self._turns):
            if previous.role == Role.TOOL:
                answered.add(previous.tool_call_id or "")
                continue
            if previous.role == Role.ASSISTANT and previous.tool_calls:
                ids = {tc.id for tc in previous.tool_calls}
                if turn.tool_call_id not in ids:
                    raise ConversationInvariantError(
                        f"Tool turn answers unknown tool call id {turn.tool_call_id!r}"
                    )
                if turn.tool_call_id in answered:
                    raise ConversationInvariantError(
                        f"Tool call {turn.tool_call_id!r} already has a result"
                    )
                return
            break
        raise ConversationInvariantError("Tool turn must follow an assistant turn with tool calls")

    def append_system_note(self, content: str) -> None:
        self.append(Turn.system(content))

    def rewrite_system_prompt(self, marker: str, content: str) -> bool:
        """Replace the first system turn whose content contains ``marker``.

        Returns:
            True if a turn was rewritten.
        """
        for index, turn in enumerate(self._turns):
            if turn.role == Role.SYSTEM and marker in turn.content:
                self._turns[index] = turn.with_content(content)
                return True
        return False

    def clear(self) -> int:
        """Drop every non-system turn. Idempotent.

        Returns:
            Number of turns removed.
        """
        before = len(self._turns)
        self._turns = [t for t in self._turns if t.role == Role.SYSTEM]
        return before - len(self._turns)
