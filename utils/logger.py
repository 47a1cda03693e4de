"""Logging utility with Rich console output and file logging."""

from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme


# Custom theme for consistent styling
THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "step": "blue",
    "api": "magenta",
    "dim": "dim",
})


class CompileLogger:
    """Logger that outputs to Rich console and optionally to a file."""

    def __init__(
        self,
        command: str,
        logs_dir: Path | str | None = "./logs",
        console: Console | None = None,
    ):
        """Initialize the logger.

        Args:
            command: The command name (e.g., 'compile', 'reduce') for log filename.
            logs_dir: Directory to store log files. None disables the log file.
            console: Optional Rich console instance.
        """
        self.command = command
        self.log_file: Path | None = None
        self._file_handle: TextIO | None = None

        if logs_dir is not None:
            logs_dir = Path(logs_dir)
            logs_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.log_file = logs_dir / f"{command}_{timestamp}.log"
            self._file_handle = open(self.log_file, "w", encoding="utf-8")

        # Rich console for terminal output
        self.console = console or Console(theme=THEME)

    def _write_to_file(self, level: str, message: str) -> None:
        """Write a log entry to the file."""
        if self._file_handle is None:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._file_handle.write(f"[{timestamp}] {level}: {message}\n")
        self._file_handle.flush()

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self.console.print(f"[info]ℹ[/info] {message}", **kwargs)
        self._write_to_file("INFO", message)

    def success(self, message: str, **kwargs: Any) -> None:
        """Log a success message."""
        self.console.print(f"[success]✓[/success] {message}", **kwargs)
        self._write_to_file("SUCCESS", message)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self.console.print(f"[warning]⚠[/warning] {message}", **kwargs)
        self._write_to_file("WARNING", message)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message."""
        self.console.print(f"[error]✗[/error] {message}", **kwargs)
        self._write_to_file("ERROR", message)

    def step(self, message: str, **kwargs: Any) -> None:
        """Log a step/progress message."""
        self.console.print(f"[step]→[/step] {message}", **kwargs)
        self._write_to_file("STEP", message)

    def api(self, input_tokens: int, output_tokens: int, **kwargs: Any) -> None:
        """Log API token usage for one analysis service call."""
        message = f"Tokens: {input_tokens:,} in, {output_tokens:,} out"
        self.console.print(f"[api]⚡[/api] {message}", **kwargs)
        self._write_to_file("API", message)

    def header(self, title: str, **kwargs: Any) -> None:
        """Print a section header."""
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]", **kwargs)
        self.console.print()
        self._write_to_file("HEADER", title)

    def summary(
        self,
        title: str,
        data: dict[str, str],
        style: str = "green",
    ) -> None:
        """Print a summary panel with key-value data."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in data.items():
            table.add_row(key, value)

        panel = Panel(table, title=f"[bold]{title}[/bold]", border_style=style)
        self.console.print(panel)

        # Write plain text version to file
        self._write_to_file("SUMMARY", title)
        for key, value in data.items():
            self._write_to_file("SUMMARY", f"  {key}: {value}")

    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[str]],
        **kwargs: Any,
    ) -> None:
        """Print a table."""
        table = Table(title=title, **kwargs)
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*row)

        self.console.print(table)

        self._write_to_file("TABLE", title)
        for row in rows:
            self._write_to_file("TABLE", "  " + " | ".join(row))

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Direct print to console."""
        self.console.print(*args, **kwargs)
        if args:
            self._write_to_file("PRINT", " ".join(str(a) for a in args))

    def close(self) -> None:
        """Close the log file."""
        if self._file_handle is not None:
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self) -> "CompileLogger":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
