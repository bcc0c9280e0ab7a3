"""Detect a stale installed copy running against newer sources."""

import tomllib
from pathlib import Path

_PYPROJECT = Path(__file__).parent.parent.parent / "pyproject.toml"


def check_version_consistency(
    pyproject_path: Path | None = None,
) -> tuple[bool, str]:
    """Compare the runtime ``__version__`` with the one in pyproject.toml.

    A mismatch means the installed package was built from an older source
    tree; an editable install picks up source changes but not metadata.

    Args:
        pyproject_path: Override for tests. Defaults to the project root.

    Returns:
        Tuple of (is_consistent, message).  When the package runs from a
        wheel there is no pyproject.toml next to it and the check reports
        False with an explanatory message rather than raising.
    """
    from . import __version__ as runtime_version

    path = pyproject_path or _PYPROJECT
    if not path.exists():
        return False, "Cannot find pyproject.toml for version comparison"

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        return False, f"Failed to read version from pyproject.toml: {e}"

    source_version = data.get("project", {}).get("version", "unknown")
    if runtime_version != source_version:
        return False, (
            f"Version mismatch detected! "
            f"Runtime: {runtime_version}, Source: {source_version}. "
            f"Installed package is stale - reinstall with: pip install -e ."
        )

    return True, f"Version verified: {runtime_version}"
