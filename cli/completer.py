"""Custom completer for ShardCloud CLI with file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, UPLOADS_DIR

PATH_COMMANDS = ("upload", "estimate")


class ShardCloudCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - File path completion from uploads/ for 'upload' and 'estimate'
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command not in PATH_COMMANDS:
            return

        # single path argument
        if len(tokens) > 2 or (len(tokens) == 2 and is_typing_new_token):
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_uploads_files(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_uploads_files(self, partial: str) -> Iterable[Completion]:
        """
        Complete file paths from the uploads/ directory.

        Shows a message if no files are available.
        """
        uploads_path = Path.cwd() / UPLOADS_DIR

        if not uploads_path.exists() or not uploads_path.is_dir():
            if not partial or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no files found - uploads/ directory missing)",
                )
            return

        available_files = sorted(
            f"{UPLOADS_DIR}/{item.name}"
            for item in uploads_path.iterdir()
            if item.is_file()
        )

        if not available_files:
            if not partial or partial.startswith(UPLOADS_DIR) or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no files found in uploads/)",
                )
            return

        partial_lower = partial.lower()
        for file_path in available_files:
            if file_path.lower().startswith(partial_lower):
                yield Completion(file_path, start_position=-len(partial))
