"""
Per-request stream state.

One StreamSession is created for each answer and owned by exactly one
StreamController; sessions are never shared between requests.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from docqa.schemas import AnswerSource


class StreamState(str, Enum):
    INIT = "init"
    IMMEDIATE = "immediate"      # general-knowledge mode, tokens forwarded as they arrive
    BUFFERING = "buffering"      # document mode, nothing forwarded yet
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({StreamState.DONE, StreamState.ERROR, StreamState.CANCELLED})


@dataclass
class StreamSession:
    """
    Mutable state of one streamed answer.

    Invariants:
      0 <= sent_len <= len(buffer), and sent_len never decreases once
      streaming has started.
      done_sent and reader_released flip to True at most once.
    """

    source: AnswerSource
    state: StreamState = StreamState.INIT
    buffer: str = ""
    sent_len: int = 0
    started: bool = False
    client_closed: bool = False
    ended: bool = False
    keepalive_sent: bool = False
    done_sent: bool = False
    reader_released: bool = False
    finalized: bool = False
    events_sent: int = 0

    @property
    def can_write(self) -> bool:
        return not (self.ended or self.client_closed)

    @property
    def pending(self) -> str:
        return self.buffer[self.sent_len:]

    def transition(self, state: StreamState) -> None:
        # Terminal states absorb
        if self.state in TERMINAL_STATES:
            return
        self.state = state
