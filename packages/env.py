"""Load `.env` files for local development."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Union

from dotenv import find_dotenv, load_dotenv

PathLike = Union[str, Path]
_LOADED = False


def load_env(*, override: bool = False, extra_paths: Iterable[PathLike] | None = None) -> bool:
    """Load environment variables from `.env` files if they exist.

    Search order: ``extra_paths``, the nearest ``.env`` above the working
    directory, then the repository root. Each file is read at most once per
    call.

    Returns:
        ``True`` if any environment file was loaded.
    """

    global _LOADED

    if _LOADED and not override and extra_paths is None:
        return True

    candidates: list[Path] = [Path(p).expanduser() for p in extra_paths or ()]
    found = find_dotenv(usecwd=True)
    if found:
        candidates.append(Path(found))
    candidates.append(Path(__file__).resolve().parent.parent / ".env")

    loaded_any = False
    seen: set[Path] = set()
    for path in candidates:
        if not path.exists():
            continue
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        loaded_any = load_dotenv(resolved, override=override) or loaded_any

    if not override:
        _LOADED = True
    return loaded_any
