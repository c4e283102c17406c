"""Path sandbox: confines tool path arguments to a base directory.

Every path a tool receives from the model goes through resolve() before any
filesystem access. Relative, forward-slash paths only; traversal sequences,
absolute paths and symlink escapes are hard-blocked.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath, PureWindowsPath

_SEPARATORS = re.compile(r"[\\/]+")


class SandboxViolation(ValueError):
    """A requested path is empty, absolute, traverses upward, or escapes the base."""


def resolve(base_path: Path | str, requested_path: str) -> Path:
    """Validate *requested_path* against *base_path* and return the absolute path.

    Args:
        base_path: Directory the path must stay inside (project root or home).
        requested_path: Relative path supplied by the model.

    Returns:
        Absolute path under *base_path* as given (symlinks in the base itself
        are not expanded, so the result always starts with it).

    Raises:
        SandboxViolation: If the path is blank, absolute (POSIX root, Windows drive
            or UNC share), contains a '..' segment, or resolves outside the base.
    """
    if not isinstance(requested_path, str) or not requested_path.strip():
        raise SandboxViolation("Path must not be empty")

    if (
        PurePosixPath(requested_path).is_absolute()
        or PureWindowsPath(requested_path).is_absolute()
        or PureWindowsPath(requested_path).drive
        or requested_path.startswith(("/", "\\"))
    ):
        raise SandboxViolation(f"Absolute paths are not permitted: '{requested_path}'")

    if ".." in _SEPARATORS.split(requested_path):
        raise SandboxViolation(f"Path traversal is not permitted: '{requested_path}'")

    base = Path(base_path).resolve()
    target = (base / requested_path.replace("\\", "/")).resolve()

    try:
        relative = target.relative_to(base)
    except ValueError:
        raise SandboxViolation(
            f"Path '{requested_path}' resolves outside the allowed directory ('{base}')."
        )

    return Path(base_path).absolute() / relative
