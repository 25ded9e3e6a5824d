"""Command-line harness for smoke testing a chat session."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from thats_my_recruiter.controller import DialogueController
from thats_my_recruiter.core.py_models import ChatMessage, MessageAuthor
from thats_my_recruiter.main import build_controller

LOGGER = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  /signup <email> <password> <candidate|recruiter>
  /signin <email> <password>
  /signout
  /actions            list quick actions
  /do <number>        run a quick action
  /close              close the open panel
  /state              dump the session state as JSON
  exit | quit
Anything else is sent as a chat message."""


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _render_messages(messages: List[ChatMessage]) -> None:
    for message in messages:
        if message.author != MessageAuthor.assistant:
            continue
        print("\nAssistant:\n")
        print(message.text.strip())
        for action in message.actions:
            print(f"  [{action.label or action.kind}]")
        print()


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the ThatsMyRecruiter assistant in the terminal")
    parser.add_argument("--data-root", type=Path, default=None, help="Directory for local stores")
    parser.add_argument(
        "--require-confirmation",
        action="store_true",
        help="New accounts must confirm their email before signing in",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


async def _handle_command(controller: DialogueController, line: str) -> bool:
    """Run one slash command; returns ``False`` for unknown commands."""

    command, *args = line.split()
    state = controller.state
    if command == "/signup" and len(args) == 3:
        error = await controller.sign_up(args[0], args[1], args[2])
        if error:
            print(f"\n{error}\n")
    elif command == "/signin" and len(args) == 2:
        error = await controller.sign_in(args[0], args[1])
        if error:
            print(f"\n{error}\n")
    elif command == "/signout":
        await controller.sign_out()
        print("\nSigned out.\n")
    elif command == "/actions":
        for index, action in enumerate(state.quick_actions, start=1):
            print(f"  {index}. {action.label or action.kind}")
    elif command == "/do" and len(args) == 1 and args[0].isdigit():
        index = int(args[0]) - 1
        if not 0 <= index < len(state.quick_actions):
            print("\nNo such quick action.\n")
        else:
            await controller.handle_action(state.quick_actions[index])
    elif command == "/close":
        controller.close_panel()
    elif command == "/state":
        print(json.dumps(controller.state.snapshot(), indent=2, ensure_ascii=False))
    else:
        return False
    return True


async def _run(args: argparse.Namespace) -> int:
    controller = build_controller(data_root=args.data_root, require_confirmation=args.require_confirmation)
    await controller.start()

    print("ThatsMyRecruiter CLI")
    print("Type /help for commands, 'exit' or Ctrl+C to leave.\n")

    seen = 0
    while True:
        state = controller.state
        transcript = state.transcript
        if len(transcript) < seen:
            seen = 0
        _render_messages(transcript[seen:])
        seen = len(transcript)
        if state.active_panel.value != "none":
            print(f"(panel: {state.active_panel.value})")

        try:
            user_input = (await asyncio.to_thread(input, "You: ")).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_input:
            continue
        if user_input.lower() in {"exit", "quit"}:
            break
        if user_input == "/help":
            print(HELP_TEXT)
            continue
        if user_input.startswith("/"):
            if not await _handle_command(controller, user_input):
                print(HELP_TEXT)
            continue

        await controller.send_message(user_input)

    controller.close()
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(run_cli(sys.argv[1:]))
