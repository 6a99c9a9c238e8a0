"""CodeAid banner."""

from __future__ import annotations

from textual.widgets import Static

LOGO = r"""
 ██████╗ ██████╗ ██████╗ ███████╗ █████╗ ██╗██████╗
██╔════╝██╔═══██╗██╔══██╗██╔════╝██╔══██╗██║██╔══██╗
██║     ██║   ██║██║  ██║█████╗  ███████║██║██║  ██║
██║     ██║   ██║██║  ██║██╔══╝  ██╔══██║██║██║  ██║
╚██████╗╚██████╔╝██████╔╝███████╗██║  ██║██║██████╔╝
 ╚═════╝ ╚═════╝ ╚═════╝ ╚══════╝╚═╝  ╚═╝╚═╝╚═════╝
"""


class Logo(Static):
    """Bold banner shown above the conversation."""

    DEFAULT_CSS = """
    Logo {
        height: auto;
        text-style: bold;
        color: $accent;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__(LOGO.strip("\n"), **kwargs)  # type: ignore[arg-type]
