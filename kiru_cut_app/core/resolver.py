"""
Locates the ffmpeg/ffprobe executables to invoke.

Nothing is cached: the user may install a tool or flip the installed/bundled
switch between two operations, so every call looks again.
"""
import logging
import os
import typing as t
from pathlib import Path

from kiru_cut_app.config import INSTALLED_SEARCH_DIRS, RESOURCES_DIR
from kiru_cut_app.core.errors import ToolNotFound
from kiru_cut_app.core.models import Tool, ToolPolicy

logger = logging.getLogger(__name__)


def is_executable_file(path: t.Union[str, Path]) -> bool:
    """Return True if ``path`` is an existing regular file we may execute."""
    return os.path.isfile(path) and os.access(path, os.X_OK)


class ExecutableResolver:
    """Resolves tool names to absolute executable paths.

    Args:
        installed_dirs: Directories searched (in order) under the installed
            policy. Defaults to the conventional install locations.
        resources_dir: Application resource directory searched under the
            bundled policy.
        search_env_path: Whether to fall back to ``$PATH`` after
            ``installed_dirs``. Defaults to True when ``installed_dirs`` is
            not given and False when it is, so tests can pin the search.
    """

    def __init__(
        self,
        installed_dirs: t.Optional[t.Sequence[t.Union[str, Path]]] = None,
        resources_dir: t.Optional[t.Union[str, Path]] = None,
        search_env_path: t.Optional[bool] = None,
    ):
        if search_env_path is None:
            search_env_path = installed_dirs is None
        self.installed_dirs = [
            Path(d) for d in (installed_dirs if installed_dirs is not None else INSTALLED_SEARCH_DIRS)
        ]
        self.resources_dir = Path(resources_dir) if resources_dir is not None else RESOURCES_DIR
        self.search_env_path = search_env_path

    def resolve(self, tool: t.Union[Tool, str], policy: t.Union[ToolPolicy, str]) -> str:
        """Return the absolute path of ``tool`` under ``policy``.

        ffprobe is looked up next to the resolved ffmpeg first so the two
        come from the same installation whenever possible.

        Raises:
            ToolNotFound: If no executable candidate exists
        """
        tool = Tool(tool)
        policy = ToolPolicy(policy)
        finder = self.find_installed if policy is ToolPolicy.INSTALLED else self.find_bundled

        if tool is Tool.FFPROBE:
            ffmpeg_path = finder(Tool.FFMPEG.value)
            if ffmpeg_path is not None:
                sibling = ffmpeg_path.parent / Tool.FFPROBE.value
                if is_executable_file(sibling):
                    logger.debug("Using ffprobe next to ffmpeg: %s", sibling)
                    return str(sibling)

        found = finder(tool.value)
        if found is None:
            logger.warning("%s not found (policy=%s)", tool.value, policy.value)
            raise ToolNotFound(tool.value)

        logger.debug("Resolved %s -> %s (policy=%s)", tool.value, found, policy.value)
        return str(found)

    def find_installed(self, name: str) -> t.Optional[Path]:
        """Search the install directories, then ``$PATH``, for ``name``."""
        for directory in self._installed_candidates():
            candidate = directory / name
            if is_executable_file(candidate):
                return candidate.absolute()
        return None

    def find_bundled(self, name: str) -> t.Optional[Path]:
        """Search the resource directory, then its ``bin/`` folder, for ``name``."""
        for candidate in (self.resources_dir / name, self.resources_dir / "bin" / name):
            if is_executable_file(candidate):
                return candidate.absolute()
        return None

    def installed_tools_available(self) -> bool:
        """Return True if an installed ffmpeg and a matching ffprobe exist."""
        ffmpeg_path = self.find_installed(Tool.FFMPEG.value)
        if ffmpeg_path is None:
            return False
        if is_executable_file(ffmpeg_path.parent / Tool.FFPROBE.value):
            return True
        return self.find_installed(Tool.FFPROBE.value) is not None

    def _installed_candidates(self) -> t.Iterator[Path]:
        yield from self.installed_dirs
        if not self.search_env_path:
            return
        # Read fresh every call; PATH may change while the app runs
        for entry in os.environ.get("PATH", "").split(os.pathsep):
            if entry:
                yield Path(entry)
