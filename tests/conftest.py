from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from rpc_proxygen.observability.logging import LogContext


class Workspace:
    """A throwaway workspace tree of service modules and controllers."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, relative: str, source: str = "") -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return path

    def service(self, name: str, controller: str, *, controller_file: str | None = None) -> Path:
        """Create ``apps/<name>/<name>_module.py`` plus one controller file."""
        self.write(f"apps/{name}/{name}_module.py", f"class {name.title().replace('_', '')}Module: ...\n")
        return self.write(f"apps/{name}/{controller_file or name + '_controller.py'}", controller)


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)


@pytest.fixture(autouse=True)
def clear_log_context():
    """Reset LogContext between tests."""
    LogContext.clear()
    yield
    LogContext.clear()
