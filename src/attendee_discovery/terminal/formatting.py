"""Human-readable rendering of terminal status values."""


def format_uptime(milliseconds: int) -> str:
    """Render an uptime such as ``2d 3h 4m`` or ``45s``."""
    seconds = int(milliseconds // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with a binary unit, e.g. ``1.5 KB``."""
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(num_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def format_time_since(milliseconds: int) -> str:
    """Render an elapsed time such as ``5m ago``; under 30 seconds is ``Just now``."""
    seconds = int(milliseconds // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h ago"
    if hours > 0:
        return f"{hours}h {minutes % 60}m ago"
    if minutes > 0:
        return f"{minutes}m ago"
    if seconds > 30:
        return f"{seconds}s ago"
    return "Just now"
