"""Interfaces between configuration logic and user-facing clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

U16_MAX = 65535


@runtime_checkable
class ConfigurationChoice(Protocol):
    """A set of named options the user picks one of.

    The default option is used when running non-interactively.
    """

    def prompt(self) -> str:
        """Prompt shown for the selector (a client appends ':')."""

    def description(self) -> Optional[str]:
        """User-friendly description of this option, if any."""

    def all_descriptions(self) -> Optional[list[str]]:
        """Descriptions for every option, in the order of all_names()."""

    def all_names(self) -> list[str]:
        """Names of every option; this order is used by the other methods."""


@dataclass
class BoolChoice:
    """A yes/no question with a default answer."""

    prompt: str
    default: bool


@dataclass
class Input:
    """A free-text question.

    The validator, if given, raises ValueError with a message the client
    can show when the value is rejected.
    """

    prompt: str
    validator: Optional[Callable[[str], None]] = None

    def validate(self, value: str) -> None:
        """Raise ValueError if the value is not acceptable."""
        if self.validator is not None:
            self.validator(value)


@dataclass
class InputNumericU16:
    """A question whose answer is an unsigned 16-bit number."""

    prompt: str
    validator: Optional[Callable[[int], None]] = None
    default: Optional[int] = None

    def validate(self, value: int) -> None:
        """Raise ValueError if the value is out of range or rejected."""
        if not 0 <= value <= U16_MAX:
            raise ValueError(f"{value} is outside the range 0-{U16_MAX}")
        if self.validator is not None:
            self.validator(value)


@dataclass
class Password:
    """A secret question, optionally asked twice for confirmation."""

    prompt: str
    confirm: bool


class UiClient(ABC):
    """User-facing front end (CLI, TUI, GUI) that answers questions."""

    @abstractmethod
    def get_configuration_choice(self, conf_choice: ConfigurationChoice) -> int:
        """Return the index of the chosen option in conf_choice.all_names()."""

    @abstractmethod
    def get_bool_choice(self, bool_choice: BoolChoice) -> bool:
        """Return the answer to a yes/no question."""

    @abstractmethod
    def get_input(self, input_spec: Input) -> str:
        """Return a validated text answer."""

    @abstractmethod
    def get_input_numeric_u16(self, input_spec: InputNumericU16) -> int:
        """Return a validated 16-bit number."""

    @abstractmethod
    def get_password(self, password: Password) -> str:
        """Return a secret entered by the user."""