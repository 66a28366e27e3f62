"""Utilities specific to formatting the output of the CLI.
"""

from .lang import get_raw as _raw

import shutil
import time
import sys
import re

from typing import Optional


class Output:
    """This class is used to abstract the output of the CLI. This particular class is
    abstract and the implementation differs depending on the desired output format.
    """

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        """Update the current task (or create it if not the case).
        """
        raise NotImplementedError

    def finish(self) -> None:
        """Finish any active task.
        """
        raise NotImplementedError

    def print(self, text: str) -> None:
        """Raw print of the given text, this is commonly used to forward game's standard
        output/error streams. This function doesn't add any new line.
        """
        raise NotImplementedError


class HumanOutput(Output):

    state_colors = {
        "OK": "\033[92m",
        "FAILED": "\033[31m",
        "WARN": "\033[33m",
        "INFO": "\033[34m",
        "HALT": "\033[33m",
    }

    print_colors = [
        ("ERROR", "\033[31m"),
        ("WARN", "\033[33m"),
        ("SEVERE", "\033[31m"),
        ("FATAL", "\033[31m"),
    ]

    def __init__(self, color: bool) -> None:
        super().__init__()
        self.term_width = 0
        self.term_width_update_time = 0.0
        self.last_len: Optional[int] = None
        self.color = color

    def get_term_width(self) -> int:
        """Internal method used to get terminal width with a cache interval of 1 second.
        """
        now = time.monotonic()
        if now - self.term_width_update_time > 1:
            self.term_width_update_time = now
            self.term_width = shutil.get_terminal_size().columns
        return self.term_width

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:

        # Don't display updates on small terminals (9 for the state, 11 for msg).
        term_width = self.get_term_width()
        if term_width < 20:
            return

        if state is None:
            state_msg = "\r         "
        else:
            color = self.state_colors.get(state) if self.color else None
            if color is not None:
                state_msg = f"\r[{color}{state:^6s}\033[0m] "
            else:
                state_msg = f"\r[{state:^6s}] "

        print(state_msg, end="", flush=False)

        if key is None:
            self.last_len = 0
            sys.stdout.flush()
            return

        msg = _raw(key, kwargs)
        if len(msg) + 9 > term_width:
            msg = f"{msg[:term_width - 9 - 3]}..."

        msg_len = len(msg)

        print(msg, end="", flush=False)

        if self.last_len is not None and self.last_len > msg_len:
            print(" " * (self.last_len - msg_len), end="", flush=False)

        sys.stdout.flush()

        self.last_len = msg_len

    def finish(self) -> None:
        if self.last_len is not None:
            print()
            self.last_len = None

    def print(self, text: str) -> None:

        if self.color:
            for token, code in self.print_colors:
                if token in text:
                    print(code, text, "\033[0m", sep="", end="")
                    return

        print(text, end="")


class MachineOutput(Output):

    escape_re = re.compile("[\\n\\r,]")

    @classmethod
    def print_escape(cls, s: str) -> str:
        return re.sub(cls.escape_re, lambda match: "\\" + {10: "n", 13: "r"}.get(ord(match.group()), match.group()), s)

    def print_function(self, function: str, *args: str, **kwargs) -> None:
        """Print a machine-readable line for a function with some parameters.
        """
        print(function, ":", ",".join((self.print_escape(arg) for arg in [
            *args,
            *(f"{k}={v}" for k, v in kwargs.items())  # Note, k should not contain "="
        ])), sep="")

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        self.print_function("task", str(state), str(key), **kwargs)

    def finish(self) -> None:
        pass

    def print(self, text: str) -> None:
        self.print_function("print", text)
