# -*- coding: utf-8 -*-
"""Codes exchanged over the status channel, they double as process exit codes."""

COMPLETED = 0
SECRET_FATAL = 1
SIBLING_ERROR = 2


class CompletionSignal:
    """Outcome of one completion poll."""

    NONE = "none"
    COMPLETED = "completed"
    ERRORED = "errored"


# put on the channel by the signal handler, never used as an exit code
TERMINATED = -1
