"""Interactive prompting for envforge.

This module provides the small set of prompts the environment workflow
needs: free text with validation and defaults, single selection and
multiple selection with a minimum number of items.
"""

from typing import Callable, List, Optional, Sequence
import sys


class PromptError(Exception):
    """Raised when the user aborts a prompt or input cannot be read."""

    pass


Validator = Callable[[str], None]


class Prompter:
    """Prompts the user on the terminal.

    The input and output functions are injectable so flows can be driven
    from tests.
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output=None,
    ) -> None:
        """Initialize prompter.

        Args:
            input_fn: Function reading one line of user input
            output: Stream prompts and hints are written to (default: stderr)
        """
        self._input = input_fn
        self._output = output or sys.stderr

    def _write(self, text: str) -> None:
        print(text, file=self._output)

    def _read(self, label: str) -> str:
        try:
            return self._input(label).strip()
        except (EOFError, KeyboardInterrupt):
            raise PromptError("prompt interrupted by user")

    def get(
        self,
        message: str,
        help_text: str = "",
        validator: Optional[Validator] = None,
        default: Optional[str] = None,
    ) -> str:
        """Ask for a free text value.

        Args:
            message: Question to display
            help_text: Optional hint displayed under the question
            validator: Optional function raising ValueError on invalid input
            default: Value used when the user just presses Enter

        Returns:
            The validated answer
        """
        self._write(message)
        if help_text:
            self._write(f"  {help_text}")
        label = f"[{default}]: " if default else "> "

        while True:
            answer = self._read(label)
            if not answer and default is not None:
                answer = default
            if validator is not None:
                try:
                    validator(answer)
                except ValueError as e:
                    self._write(f"❌ {e}")
                    continue
            elif not answer:
                self._write("❌ A value is required.")
                continue
            return answer

    def select_one(self, message: str, help_text: str, options: Sequence[str]) -> str:
        """Ask the user to pick exactly one option.

        Returns:
            The selected option
        """
        if not options:
            raise PromptError("no options to select from")

        self._write(message)
        if help_text:
            self._write(f"  {help_text}")
        for i, option in enumerate(options, 1):
            self._write(f"  {i}. {option}")

        while True:
            choice = self._read(f"Please select an option (1-{len(options)}): ")
            if choice.isdigit() and 1 <= int(choice) <= len(options):
                return options[int(choice) - 1]
            self._write(f"❌ Invalid choice. Please select a number from 1-{len(options)}.")

    def multi_select(
        self,
        message: str,
        help_text: str,
        options: Sequence[str],
        min_items: int = 0,
        defaults: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Ask the user to pick several options by comma-separated numbers.

        An empty answer selects the defaults. Selecting fewer than
        ``min_items`` options is rejected and asked again.

        Returns:
            The selected options in the order they are listed
        """
        self._write(message)
        if help_text:
            self._write(f"  {help_text}")
        for i, option in enumerate(options, 1):
            marker = "*" if defaults and option in defaults else " "
            self._write(f" {marker}{i}. {option}")

        while True:
            answer = self._read("Select options (e.g. 1,2): ")
            if not answer:
                selected = list(defaults or [])
            else:
                indexes = [part.strip() for part in answer.split(",") if part.strip()]
                if not all(i.isdigit() and 1 <= int(i) <= len(options) for i in indexes):
                    self._write(f"❌ Invalid choice. Use numbers from 1-{len(options)}.")
                    continue
                chosen = {int(i) - 1 for i in indexes}
                selected = [option for i, option in enumerate(options) if i in chosen]

            if len(selected) < min_items:
                self._write(f"❌ Please select at least {min_items} options.")
                continue
            return selected
