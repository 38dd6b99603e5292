#!/usr/bin/env python3
"""
DualChat - Two-persona AI discussion with a shared notepad

Command-line interface for running one DualChat session.

Usage:
    python scripts/dualchat.py "Compare B-trees and LSM trees"
    python scripts/dualchat.py --mode fixed --turns 3 "Plan a 3-day trip to Kyoto"
    python scripts/dualchat.py --image diagram.png "What does this diagram show?"
    python scripts/dualchat.py --timing  # Enable performance timing
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DualChat: a logical and a creative AI discuss your question",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Two personas discuss your query, edit a shared notepad, and the logical
persona writes the final answer into the notepad.

Examples:
  python scripts/dualchat.py "Explain CRDTs"              # AI-driven ending
  python scripts/dualchat.py --mode fixed --turns 2 "..."  # Exactly 2 reply pairs
  python scripts/dualchat.py --image chart.png "..."       # Attach an image
  python scripts/dualchat.py --timing "..."                # Performance metrics
        """,
    )

    parser.add_argument(
        "query",
        nargs="?",
        help="Question to discuss (prompted for when omitted)",
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["fixed", "ai-driven"],
        help="How the discussion ends (default from config)",
    )

    parser.add_argument(
        "--turns", "-n",
        type=int,
        help="Number of discussion turns in fixed mode",
    )

    parser.add_argument(
        "--image", "-i",
        help="Path to a PNG/JPEG/GIF/WebP image to attach",
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to dualchat_config.yaml",
    )

    parser.add_argument(
        "--checkpoint-dir",
        help="Directory where failed-step checkpoints are saved",
    )

    parser.add_argument(
        "--runlog-dir",
        help="Directory where session event logs are written",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--timing", "-t",
        action="store_true",
        help="Enable performance timing metrics",
    )

    return parser.parse_args()


def render_notepad(content: str) -> None:
    """Print the notepad as Markdown."""
    from rich.console import Console as RichConsole
    from rich.markdown import Markdown
    from rich.panel import Panel

    RichConsole().print(Panel(Markdown(content or "_(empty)_"), title="Notepad", border_style="cyan"))


def ask_retry() -> bool:
    from DualChat.utils import console

    try:
        answer = console.user_prompt("Retry failed step? [y/N]").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return False
    return answer in ("y", "yes")


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from DualChat.utils import console
    from DualChat.utils.timing import timing

    if args.timing:
        os.environ["DUALCHAT_TIMING"] = "1"
        timing().enable()

    if args.no_color:
        console.enable_colors(False)

    if args.verbose:
        console.set_verbose(True)
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    from DualChat.config import DualChatConfig
    from DualChat.infrastructure import SessionBusyError, handle_error
    from DualChat.llm_backends import build_completion_service, image_to_payload
    from DualChat.runtime import DiscussionMode, DiscussionPolicy, SessionStatus
    from DualChat.session import SessionController
    from DualChat.utils import Style

    try:
        config = DualChatConfig(Path(args.config) if args.config else None)
    except ValueError as e:
        console.error(f"Invalid configuration: {e}")
        return 1

    policy = config.discussion.to_policy()
    if args.mode or args.turns is not None:
        mode = DiscussionMode(args.mode) if args.mode else policy.mode
        policy = DiscussionPolicy(mode=mode, fixed_turns=args.turns or policy.fixed_turns)

    image = None
    if args.image:
        try:
            image = image_to_payload(args.image)
        except ValueError as e:
            console.error(str(e))
            return 1

    query = args.query
    if not query:
        console.header("DualChat")
        try:
            query = console.user_prompt("Your question")
        except (KeyboardInterrupt, EOFError):
            print("\n\n  Goodbye!")
            return 0
        if not query.strip() and image is None:
            return 0

    personas = config.personas
    console.persona_colors = {
        personas.logical_name: Style.BLUE,
        personas.creative_name: Style.MAGENTA,
    }

    def on_notice(notice) -> None:
        console.notice(notice.level.value, notice.text, notice.step_id)

    def on_turn(record) -> None:
        console.agent_message(
            personas.display_name(record.speaker),
            record.text,
            record.duration_ms,
            signaled=record.termination_signal,
        )

    service = build_completion_service(config)
    controller = SessionController(
        config,
        service,
        runlog_dir=Path(args.runlog_dir) if args.runlog_dir else None,
        checkpoint_dir=Path(args.checkpoint_dir) if args.checkpoint_dir else None,
        on_notice=on_notice,
        on_turn=on_turn,
    )

    # Ctrl-C cancels cooperatively: the in-flight call finishes, its result is dropped
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.cancel_session)
        handles_sigint = True
    except NotImplementedError:
        handles_sigint = False

    try:
        console.session_start(query, policy.label)
        session = await controller.start_session(query, image=image, policy=policy)

        while session.status == SessionStatus.AWAITING_MANUAL_RETRY:
            # input() blocks the loop, so Ctrl-C must raise KeyboardInterrupt here
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)
            retry = ask_retry()
            if handles_sigint:
                loop.add_signal_handler(signal.SIGINT, controller.cancel_session)
            if not retry:
                controller.cancel_session()
                break
            session = await controller.retry_failed_step()
    except SessionBusyError as e:
        handle_error(e, "DualChat")
        return 1
    except ValueError as e:
        console.error(str(e))
        return 1
    finally:
        await service.aclose()

    if session.status == SessionStatus.DONE:
        seconds = (controller.last_session_duration_ms or 0) / 1000
        console.session_complete(
            f"{controller.last_completed_turn_count} turn(s), {seconds:.1f}s"
        )
        render_notepad(controller.notepad.content)
    elif session.status == SessionStatus.FAILED:
        console.session_failed(session.error or "credential error")
    else:
        console.warning("Session cancelled.")

    if args.timing:
        timing().print_summary()

    return 0 if session.status == SessionStatus.DONE else 1


def main() -> None:
    """Main entry point."""
    args = parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
