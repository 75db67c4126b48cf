from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

# ─────────────────────────────────────────────
# BASE DIRECTORY
# ─────────────────────────────────────────────

def application_base_dir() -> Path:
    """
    Returns the project base directory.
    Works both from source and from a PyInstaller executable.
    """
    # PyInstaller sets _MEIPASS
    if hasattr(sys, "_MEIPASS"):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parent.parent.parent


# ─────────────────────────────────────────────
# ABSOLUTE PATH RESOLVER
# ─────────────────────────────────────────────

def ABSOLUTE_PATH(relative_path: str) -> str:
    """Absolute path of a file relative to the project root."""
    base = application_base_dir()
    return str(base.joinpath(relative_path))


FONTS_DIR = "assets/fonts"
FONT_SUFFIXES = (".ttf", ".otf", ".ttc")


def find_font_file(family: Optional[str], fonts_dir: Optional[str] = None) -> Optional[str]:
    """Look up ``<family>.ttf`` (or a file whose stem contains it) in the fonts directory."""
    if not family:
        return None
    root = Path(fonts_dir or ABSOLUTE_PATH(FONTS_DIR))
    if not root.is_dir():
        return None

    wanted = family.lower().replace(" ", "").replace("-", "").replace("_", "")
    candidates = sorted(p for p in root.iterdir() if p.suffix.lower() in FONT_SUFFIXES)
    for p in candidates:
        if p.stem.lower() == family.lower():
            return str(p)
    for p in candidates:
        stem = p.stem.lower().replace(" ", "").replace("-", "").replace("_", "")
        if stem.startswith(wanted):
            return str(p)
    return None
