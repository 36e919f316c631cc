"""
State Machine Tokenizer
=======================
Deterministic line-oriented state machine that recovers question/answer
records from loosely formatted AI output, based on text anchors
(``Q:`` / ``Question:`` and ``A:`` / ``Answer:``).
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import NamedTuple, Optional

from .models import Record

logger = logging.getLogger(__name__)

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# Matches "Q: ...", "Question: ..." (text after the colon is required)
QUESTION_PATTERN = re.compile(r"^(?:Q|Question)\s*:\s*(.+)$", re.IGNORECASE)

# Matches "A: ...", "Answer:" (text after the colon may be empty)
ANSWER_PATTERN = re.compile(r"^(?:A|Answer)\s*:\s*(.*)$", re.IGNORECASE)

# Ordinal list markers such as "1. " or "  12." at the start of a line
ORDINAL_PATTERN = re.compile(r"^\s*\d+\.\s*", re.MULTILINE)

_LINE_ENDINGS = re.compile(r"\r\n?")


class TokenizerState(Enum):
    """Where the tokenizer is relative to the pending record."""
    IDLE = "IDLE"
    IN_QUESTION = "IN_QUESTION"
    IN_ANSWER = "IN_ANSWER"


class Action(Enum):
    """What a classified line does to the pending record."""
    START_QUESTION = "start_question"
    START_ANSWER = "start_answer"
    APPEND_ANSWER = "append_answer"
    IGNORE = "ignore"


class Transition(NamedTuple):
    state: TokenizerState
    action: Action
    text: str = ""


def normalize_text(raw: str) -> str:
    """Unify line endings, drop ordinal list markers, trim outer blank lines."""
    text = _LINE_ENDINGS.sub("\n", raw)
    text = ORDINAL_PATTERN.sub("", text)
    return text.strip()


def transition(state: TokenizerState, line: str) -> Transition:
    """
    Classify one trimmed line against the current state.

    Pure function: the caller applies the returned action. A question anchor
    wins in every state; an answer anchor only counts once a question is
    pending; plain lines only matter inside an answer.
    """
    q_match = QUESTION_PATTERN.match(line)
    if q_match:
        return Transition(
            TokenizerState.IN_QUESTION, Action.START_QUESTION, q_match.group(1)
        )

    if state != TokenizerState.IDLE:
        a_match = ANSWER_PATTERN.match(line)
        if a_match:
            return Transition(
                TokenizerState.IN_ANSWER, Action.START_ANSWER, a_match.group(1)
            )

    if state == TokenizerState.IN_ANSWER:
        return Transition(state, Action.APPEND_ANSWER, line)

    return Transition(state, Action.IGNORE)


class TokenizerStateMachine:
    """
    Finite State Machine that transforms raw text into an ordered sequence
    of Records. Never raises on content: incomplete blocks are dropped.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = TokenizerState.IDLE
        self.pending_question: Optional[str] = None
        self.answer_lines: list[str] = []
        self.records: list[Record] = []
        self.dropped = 0

    def parse(self, raw_text: str) -> list[Record]:
        """Parse text into records, in input order."""
        self.reset()
        if not raw_text:
            return []

        for line in normalize_text(raw_text).split("\n"):
            self.feed(line.strip())

        # End of input commits whatever is pending
        self._commit()

        logger.debug(
            f"Tokenized {len(self.records)} records "
            f"({self.dropped} incomplete blocks dropped)"
        )
        return self.records

    def feed(self, line: str):
        """Apply a single (already trimmed) line."""
        step = transition(self.state, line)

        if step.action == Action.START_QUESTION:
            self._commit()
            self.pending_question = step.text
            self.answer_lines = []
        elif step.action == Action.START_ANSWER:
            self.answer_lines = [step.text]
        elif step.action == Action.APPEND_ANSWER:
            self.answer_lines.append(step.text)

        self.state = step.state

    def _commit(self):
        """Store the pending record if both halves are non-empty."""
        if self.pending_question is None:
            return

        question = self.pending_question.strip()
        answer = "\n".join(self.answer_lines).strip()

        if question and answer:
            self.records.append(Record(question=question, answer=answer))
        else:
            self.dropped += 1
            logger.debug(f"Dropped incomplete block: {question[:40]!r}")

        self.pending_question = None
        self.answer_lines = []


def parse(raw_text: str) -> list[Record]:
    """Convenience wrapper running a fresh state machine over ``raw_text``."""
    return TokenizerStateMachine().parse(raw_text)
