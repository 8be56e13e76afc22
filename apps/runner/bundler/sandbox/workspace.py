"""Per-build scratch directories.

Each build gets a uniquely named directory under the system temp dir.
open_workspace() removes it on every exit path: success, a fatal stage
error, or cancellation when the overall build budget runs out.
"""

import asyncio
import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "mcp-"


class Workspace:
    """An exclusively owned scratch directory for one build."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def install_dir(self, subdirectory: Optional[str] = None) -> Path:
        """Directory the package lives in: the root, or a subdirectory of it.

        A subdirectory that would resolve outside the workspace is ignored.
        """
        if not subdirectory:
            return self.root
        candidate = (self.root / subdirectory).resolve()
        root = self.root.resolve()
        if candidate != root and root not in candidate.parents:
            logger.warning(
                "Subdirectory %r escapes the workspace; using the repository root",
                subdirectory,
            )
            return self.root
        return self.root / subdirectory

    @property
    def dependencies_dir(self) -> Path:
        return self.root / "node_modules"

    def __repr__(self) -> str:
        return f"Workspace({self.root})"


@asynccontextmanager
async def open_workspace(prefix: str = WORKSPACE_PREFIX) -> AsyncIterator[Workspace]:
    """Create a workspace and guarantee its removal."""
    root = Path(tempfile.mkdtemp(prefix=prefix))
    logger.info("Temp dir: %s", root)
    try:
        yield Workspace(root)
    finally:
        await _remove_tree(root)


async def _remove_tree(root: Path) -> None:
    # Shielded so a cancelled build still finishes deleting its directory.
    removal = asyncio.ensure_future(asyncio.to_thread(shutil.rmtree, root, True))
    try:
        await asyncio.shield(removal)
    except asyncio.CancelledError:
        await removal
        raise
    logger.info("Removed workspace %s", root)
