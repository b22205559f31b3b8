"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Optional, Protocol, Tuple

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")

# Shell option name -> (ShellConfig field, description)
SHELL_OPTIONS = {
    "verbose": ("verbose", "Verbosity level (0 hides the queue after each command)"),
    "malloc": ("fail_percent", "Allocation failure probability (percent)"),
    "length": ("string_length", "Maximum length of removed strings"),
    "error": ("error_limit", "Number of errors before stopping"),
    "echo": ("echo", "Echo commands before running them"),
}


def parse_bool(raw: str, name: str) -> bool:
    """
    Parse a true/false word.

    Raises:
        ValueError: If raw is not a recognised true or false value
    """
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(
        f"Invalid value '{raw}' for {name}, expected one of {', '.join(TRUE_VALUES + FALSE_VALUES)}"
    )


@dataclass
class ShellConfig:
    """Command shell configuration."""
    verbose: int = 1
    fail_percent: int = 0
    string_length: int = 1024
    error_limit: int = 5
    echo: bool = False
    show_limit: int = 50
    seed: Optional[int] = None
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: If any value is out of range
        """
        if not 0 <= self.fail_percent <= 100:
            raise ValueError(f"fail_percent must be between 0 and 100, got {self.fail_percent}")
        for name in ("verbose", "string_length", "error_limit", "show_limit"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def option_names() -> List[str]:
        """Names the shell's option command accepts."""
        return list(SHELL_OPTIONS)

    def describe_options(self) -> List[Tuple[str, Any, str]]:
        """(name, current value, description) for every shell option."""
        values = self.to_dict()
        return [
            (name, values[field_name], description)
            for name, (field_name, description) in SHELL_OPTIONS.items()
        ]

    def with_option(self, name: str, raw: str) -> "ShellConfig":
        """
        Return a copy with one shell option set from its text form.

        Raises:
            ValueError: If the option is unknown or the value is invalid
        """
        if name not in SHELL_OPTIONS:
            raise ValueError(f"Unknown option '{name}'")
        field_name = SHELL_OPTIONS[name][0]

        if field_name == "echo":
            value = parse_bool(raw, f"option {name}")
        else:
            try:
                value = int(raw)
            except ValueError:
                raise ValueError(f"Invalid value '{raw}' for option {name}") from None
        return replace(self, **{field_name: value})


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_shell_config(self) -> ShellConfig:
        """Get command shell configuration."""
        ...


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return parse_bool(raw, name)


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_shell_config(self) -> ShellConfig:
        """Get shell configuration from environment variables."""
        try:
            return ShellConfig(
                verbose=_env_int("STRQUEUE_VERBOSE", 1),
                fail_percent=_env_int("STRQUEUE_MALLOC_FAIL", 0),
                string_length=_env_int("STRQUEUE_STRING_LENGTH", 1024),
                error_limit=_env_int("STRQUEUE_ERROR_LIMIT", 5),
                echo=_env_bool("STRQUEUE_ECHO", False),
                show_limit=_env_int("STRQUEUE_SHOW_LIMIT", 50),
                seed=_env_int("STRQUEUE_SEED", None),
                log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
                log_file=os.getenv("STRQUEUE_LOG_FILE") or None,
            )
        except ValueError as e:
            raise ValueError(f"Invalid strqueue configuration: {e}") from e
