"""
Entry point for the arbitrage scanner API server.

Usage:
    python -m arbscanner
    arbscanner  # if installed via pip
"""

import importlib.util
import sys

from arbscanner import __version__
from arbscanner.config.settings import Settings, get_settings


BANNER = f"""
╔═══════════════════════════════════════════════════════════════╗
║     CROSS-EXCHANGE ARBITRAGE SCANNER v{__version__:<18}      ║
║                                                               ║
║     Simulated opportunities, live prices, deal ledger         ║
╚═══════════════════════════════════════════════════════════════╝
"""


def select_event_loop(settings: Settings) -> str:
    """uvicorn loop setting: uvloop when enabled and installed."""
    if settings.use_uvloop and importlib.util.find_spec("uvloop") is not None:
        return "uvloop"
    return "asyncio"


def print_configuration(settings: Settings, loop: str) -> None:
    seed = settings.random_seed if settings.random_seed is not None else "none"
    rows = [
        ("Listen", f"{settings.host}:{settings.port}"),
        ("Batch size", settings.batch_size),
        ("Page limit", f"{settings.default_page_limit} (max {settings.max_page_limit})"),
        (
            "Update period",
            f"{settings.default_update_period:g}s "
            f"[{settings.min_update_period:g}s .. {settings.max_update_period:g}s]",
        ),
        ("Random seed", seed),
        ("Event loop", loop),
    ]
    print("Configuration:")
    for label, value in rows:
        print(f"  {label + ':':<15} {value}")
    print()


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    print(BANNER)

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("\nSettings are read from SCANNER_* environment variables or .env, e.g.:")
        print("  SCANNER_PORT=8000")
        print("  SCANNER_DEFAULT_UPDATE_PERIOD=5")
        return 1

    loop = select_event_loop(settings)
    print_configuration(settings, loop)

    from arbscanner.dashboard.server import main as run_server

    try:
        run_server(loop=loop)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
