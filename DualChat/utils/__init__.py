"""
Console output for DualChat.

Styled terminal lines for persona utterances, session notices and the
session banner. Colors are dropped automatically when stdout is not a TTY.
"""

import sys
from typing import Optional
from datetime import datetime


class Style:
    """ANSI escape codes."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"


class StatusIcon:
    SUCCESS = "✓"
    FAILURE = "✗"
    WARNING = "⚠"
    INFO = "ℹ"
    RUNNING = "●"
    BULLET = "•"
    STOP = "⏹"


# Notice level value -> (icon, color)
_NOTICE_STYLES = {
    "info": (StatusIcon.INFO, Style.BLUE),
    "warning": (StatusIcon.WARNING, Style.YELLOW),
    "error": (StatusIcon.FAILURE, Style.RED),
}


class Console:
    """
    Class-level console; `console` below is the shared handle.

    `persona_colors` maps a persona display name to a Style color and is
    filled in by whoever knows the configured names.
    """

    _enabled = True
    _verbose = False

    persona_colors: dict[str, str] = {}

    @classmethod
    def enable_colors(cls, enabled: bool = True) -> None:
        cls._enabled = enabled

    @classmethod
    def set_verbose(cls, verbose: bool = True) -> None:
        cls._verbose = verbose

    @classmethod
    def _style(cls, text: str, *styles: str) -> str:
        if not cls._enabled or not sys.stdout.isatty():
            return text
        return f"{''.join(styles)}{text}{Style.RESET}"

    @classmethod
    def _rule(cls, width: int = 50) -> str:
        return cls._style("─" * width, Style.DIM)

    # === Status lines ===

    @classmethod
    def error(cls, message: str) -> None:
        cls.notice("error", message)

    @classmethod
    def warning(cls, message: str) -> None:
        cls.notice("warning", message)

    @classmethod
    def info(cls, message: str) -> None:
        cls.notice("info", message)

    @classmethod
    def debug(cls, message: str) -> None:
        """Only printed in verbose mode."""
        if cls._verbose:
            print(cls._style(f"  {StatusIcon.BULLET} {message}", Style.DIM))

    @classmethod
    def notice(cls, level: str, text: str, step_id: Optional[str] = None) -> None:
        """
        Print a session notice.

        Args:
            level: "info", "warning" or "error" (NoticeLevel values)
            text: Notice text, printed verbatim
            step_id: Step the notice refers to, shown dimmed in verbose mode
        """
        icon, color = _NOTICE_STYLES.get(level, _NOTICE_STYLES["info"])
        line = f"{cls._style(icon, color, Style.BOLD)} {cls._style(text, color) if level != 'info' else text}"
        if step_id and cls._verbose:
            line += " " + cls._style(f"[{step_id}]", Style.DIM)
        print(line)

    # === Dialogue ===

    @classmethod
    def agent_message(
        cls,
        agent_name: str,
        message: str,
        duration_ms: Optional[float] = None,
        signaled: bool = False,
    ) -> None:
        """Print one persona utterance."""
        color = cls.persona_colors.get(agent_name, Style.CYAN)
        parts = [cls._style(f"[{agent_name.upper()}]:", Style.BOLD, color), message]
        if signaled:
            parts.append(cls._style(StatusIcon.STOP, Style.YELLOW))
        if duration_ms is not None:
            parts.append(cls._style(f"({duration_ms / 1000:.1f}s)", Style.DIM))
        print("\n" + " ".join(parts))

    # === Session banner ===

    @classmethod
    def session_start(cls, query: str, mode_label: str) -> None:
        preview = query[:60] + "..." if len(query) > 60 else query
        print(f"\n{cls._rule()}")
        print(f"  {StatusIcon.RUNNING} {cls._style(preview or '(image only)', Style.BOLD, Style.CYAN)}")
        print(f"  {cls._style(mode_label, Style.DIM)}")
        print(cls._rule())

    @classmethod
    def session_complete(cls, summary: str = "") -> None:
        icon = cls._style(StatusIcon.SUCCESS, Style.GREEN, Style.BOLD)
        print(f"\n{cls._rule()}")
        print(f"  {icon} {cls._style('Discussion complete', Style.BOLD, Style.GREEN)}")
        if summary:
            print(f"  {summary}")
        print(cls._rule())

    @classmethod
    def session_failed(cls, error: str) -> None:
        icon = cls._style(StatusIcon.FAILURE, Style.RED, Style.BOLD)
        print(f"\n{cls._rule()}")
        print(f"  {icon} {cls._style('Session stopped', Style.BOLD, Style.RED)}")
        print(f"  Error: {error}")
        print(cls._rule())

    # === Input ===

    @classmethod
    def user_prompt(cls, prompt: str = "YOU") -> str:
        return input(cls._style(f"[{prompt}]: ", Style.BOLD, Style.WHITE))

    @classmethod
    def header(cls, text: str, width: int = 60) -> None:
        line = cls._style("=" * width, Style.DIM)
        print(f"\n{line}")
        print(cls._style(text.center(width), Style.BOLD))
        print(line)


console = Console()


def get_current_timestamp() -> str:
    """Timestamp for ids and file names."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


__all__ = [
    "Style",
    "StatusIcon",
    "Console",
    "console",
    "get_current_timestamp",
]
