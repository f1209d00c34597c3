"""Utility functions for the dashboard."""

NEXA_TITLE = """███╗   ██╗███████╗██╗  ██╗ █████╗
████╗  ██║██╔════╝╚██╗██╔╝██╔══██╗
██╔██╗ ██║█████╗   ╚███╔╝ ███████║
██║╚██╗██║██╔══╝   ██╔██╗ ██╔══██║
██║ ╚████║███████╗██╔╝ ██╗██║  ██║
╚═╝  ╚═══╝╚══════╝╚═╝  ╚═╝╚═╝  ╚═╝"""


def format_duration(seconds: int | None) -> str:
    """Render a second count as HH:MM:SS."""
    if seconds is None:
        return "—"
    hours, remainder = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_hashrate(mhs: float | None) -> str:
    """Pick a readable unit for a hashrate given in MH/s."""
    if mhs is None:
        return "—"
    if mhs >= 1000:
        return f"{mhs / 1000:.2f} GH/s"
    if mhs < 1:
        return f"{mhs * 1000:.2f} kH/s"
    return f"{mhs:.2f} MH/s"


def shorten(value: str | None, length: int = 16) -> str:
    if not value:
        return "—"
    return value if len(value) <= length else f"{value[:length]}..."
