import sys

GRAY = "\033[90m"
RESET = "\033[0m"


def print_event_gray(text: str) -> None:
    """
    Print event/debug output in gray using ANSI escape codes.
    """
    print(f"{GRAY}{text}{RESET}")


def print_error(prog: str, message: str) -> None:
    """
    Report a front-end error on stderr as '[prog] message'.
    """
    print(f"[{prog}] {message}", file=sys.stderr)


def format_event(event) -> str:
    """One-line rendering of an OrgEvent for --events traces."""
    parts = [f"{key}={value!r}" for key, value in event.data.items()]
    return f"{event.type}: " + " ".join(parts)
