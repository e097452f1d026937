"""Terminal output helpers for banners, status lines and summaries."""

from __future__ import annotations

import sys


class C:
    """ANSI colour codes (no-op if not a tty)."""

    _tty = sys.stdout.isatty()
    RED = "\033[0;31m" if _tty else ""
    GREEN = "\033[0;32m" if _tty else ""
    CYAN = "\033[0;36m" if _tty else ""
    YELLOW = "\033[1;33m" if _tty else ""
    BOLD = "\033[1m" if _tty else ""
    NC = "\033[0m" if _tty else ""


def info(msg: str) -> None:
    print(f"{C.CYAN}[INFO]{C.NC}  {msg}")


def ok(msg: str) -> None:
    print(f"{C.GREEN}[ OK ]{C.NC} {msg}")


def warn(msg: str) -> None:
    print(f"{C.YELLOW}[WARN]{C.NC} {msg}")


def fail(msg: str, code: int = 1) -> None:
    print(f"{C.RED}[FAIL]{C.NC} {msg}", file=sys.stderr)
    sys.exit(code)


def banner(title: str, width: int = 62) -> None:
    print()
    print(f"{C.BOLD}{'=' * width}{C.NC}")
    print(f"{C.BOLD}  {title}{C.NC}")
    print(f"{C.BOLD}{'=' * width}{C.NC}")
    print()


def fmt_duration(seconds: float | None) -> str:
    """Render a trial duration, or a marker for trials that never converged."""
    if seconds is None:
        return "did not converge"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.2f}s"


# ── Report formatting ────────────────────────────────────────────────────────

DIV = "─" * 76
SEC = "═" * 76


def header(title: str) -> str:
    return f"\n{SEC}\n  {title}\n{SEC}"


def section(title: str) -> str:
    return f"\n{DIV}\n  {title}\n{DIV}"
