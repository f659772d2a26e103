from rich.console import Console
from rich.markup import escape


class ScanLogger:
    """
    Console logger handed to every scanner. Verbose lines are dropped unless
    the logger was built with verbose=True; errors and warnings always print.
    """
    def __init__(self, verbose: bool = False, console: Console = None):
        self.verbose = verbose
        self.console = console if console is not None else Console()

    def log(self, message: str, style: str = ""):
        if self.verbose:
            self._print(message, style)

    def info(self, message: str, style: str = "cyan"):
        self._print(message, style)

    def warn(self, message: str):
        self._print(f"[!] {message}", "yellow")

    def log_error(self, error: Exception, context: str = ""):
        prefix = f"{context}: " if context else ""
        self._print(f"    [!] {prefix}{type(error).__name__}: {error}", "red")

    def _print(self, message: str, style: str):
        text = escape(message)
        self.console.print(f"[{style}]{text}[/{style}]" if style else text, highlight=False)
