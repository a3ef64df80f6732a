"""Local executable resolution for offline tools.

Responsibilities:
- Resolve an external executable with explicit-override-first precedence.
- Support bundled binaries shipped next to a frozen application.
"""

from __future__ import annotations

from pathlib import Path
import shutil
import sys


def resolve_executable(command_name: str, override: str | None = None) -> str:
    """Resolve an executable path for subprocess invocation.

    Resolution order:
    1. Explicit `override` path when it points at an existing file.
    2. Bundled app directory (`./bin/<tool>` next to a frozen executable).
    3. System `PATH`.
    4. Raw command name, letting subprocess raise a native missing-binary error.
    """

    if override:
        override_path = Path(override).expanduser()
        if override_path.is_file():
            return str(override_path)

    normalized = command_name.strip()
    if not normalized:
        return command_name

    if getattr(sys, "frozen", False):
        bundled_root = Path(sys.executable).resolve().parent / "bin"
        for name in (normalized, f"{normalized}.exe"):
            candidate = bundled_root / name
            if candidate.is_file():
                return str(candidate)

    return shutil.which(normalized) or normalized
