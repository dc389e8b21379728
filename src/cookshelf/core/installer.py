"""Installing a Shelffile: reconcile, resolve, lock, vendor.

``Installer`` ties the pieces together for one Shelffile::

    shelffile = Shelffile.from_file("Shelffile", config)
    installer = Installer(shelffile, ArtifactCache(config.cache_path), config)
    result = installer.install(except_=["test"], path="vendor/cookbooks")

``install`` reuses the lockfile verbatim when the Shelffile text is
unchanged, otherwise re-resolves while keeping still-valid pins, then writes
the new lockfile. A failure to write the lockfile does not fail the
install; it is logged and returned in ``InstallResult.warnings``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from cookshelf.core.dependency.resolver import DEFAULT_MAX_WORKERS, Resolver, Solution
from cookshelf.core.lockfile import Lockfile, Reconciliation, reconcile, restore_solution
from cookshelf.exceptions import InvalidFilterOptions, LockPersistFailure, UnresolvableConflict

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig
    from cookshelf.core.cache.store import ArtifactCache
    from cookshelf.core.declaration.shelffile import Shelffile

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Outcome of ``Installer.install``.

    Attributes:
        solution: The installed cookbooks.
        reused_lock: True when the lockfile was used without resolving.
        warnings: Non-fatal problems, e.g. a ``LockPersistFailure``.
        vendor_path: Where the cookbooks were vendored, if requested.
    """

    solution: Solution
    reused_lock: bool = False
    warnings: list[Exception] = field(default_factory=list)
    vendor_path: Path | None = None


class Installer:
    """Install the cookbooks a Shelffile declares.

    Args:
        shelffile: The loaded declarations.
        cache: Artifact cache for every install.
        config: Configuration used to rebuild locked locations.
        max_workers: Resolver thread pool size.
    """

    def __init__(
        self,
        shelffile: Shelffile,
        cache: ArtifactCache,
        config: ShelfConfig | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.shelffile = shelffile
        self.cache = cache
        self.config = config
        self.max_workers = max_workers

    @property
    def lockfile_path(self) -> Path:
        return self.shelffile.lockfile_path

    def resolver(self) -> Resolver:
        return Resolver(self.cache, self.shelffile.default_locations, self.max_workers)

    def read_lockfile(self) -> Lockfile | None:
        """The current lockfile, or None when there is none.

        Raises:
            LockfileError: If the lockfile exists but is corrupt.
        """
        if not self.lockfile_path.is_file():
            return None
        return Lockfile.read(self.lockfile_path)

    def resolve(
        self,
        only: Iterable[str] | None = None,
        except_: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        """Resolve the declared cookbooks, ignoring any lockfile.

        Returns:
            ``{"solution": Solution, "sources": [DependencyEntry, ...]}``.
        """
        sources = self.shelffile.sources(only=only, except_=except_)
        solution = self.resolver().resolve(sources)
        return {"solution": solution, "sources": sources}

    def install(
        self,
        only: Iterable[str] | None = None,
        except_: Iterable[str] | None = None,
        path: str | Path | None = None,
    ) -> InstallResult:
        """Install the declared cookbooks, honouring and refreshing the lockfile.

        Args:
            only: Install only cookbooks in these groups.
            except_: Install all cookbooks except those in these groups.
            path: Vendor the installed cookbooks into this directory.

        Raises:
            InvalidFilterOptions: If both ``only`` and ``except_`` are given.
            UnresolvableConflict: If the declarations cannot be satisfied.
            DownloadFailure: If a cookbook cannot be downloaded.
            LockfileError: If the existing lockfile is corrupt.
        """
        if only and except_:
            raise InvalidFilterOptions()
        return self._install(self.read_lockfile(), only, except_, path)

    def update(
        self,
        names: Iterable[str] | None = None,
        only: Iterable[str] | None = None,
        except_: Iterable[str] | None = None,
    ) -> InstallResult:
        """Re-resolve, discarding the locked pins of *names* (all when None)."""
        if only and except_:
            raise InvalidFilterOptions()
        lockfile = self.read_lockfile()
        names = list(names or [])
        if lockfile is not None and names:
            for name in names:
                if not lockfile.has_entry(name):
                    logger.warning("%s is not in the lockfile", name)
                lockfile.remove_entry(name)
            # Force re-resolution even though the Shelffile is unchanged.
            lockfile.fingerprint = ""
        elif not names:
            lockfile = None
        return self._install(lockfile, only, except_, path=None)

    def _install(
        self,
        lockfile: Lockfile | None,
        only: Iterable[str] | None,
        except_: Iterable[str] | None,
        path: str | Path | None,
    ) -> InstallResult:
        sources = self.shelffile.sources(only=only, except_=except_)
        plan = reconcile(self.shelffile.raw_text, sources, lockfile)

        if plan.reuse:
            solution = restore_solution(plan.locked, sources, self.cache, self.config)
            result = InstallResult(solution=solution, reused_lock=True)
        else:
            solution = self._resolve_plan(plan)
            result = InstallResult(solution=solution)
            # A filtered install resolves a subset; locking it would drop
            # the other groups' pins.
            if only or except_:
                logger.debug("Group filter active; lockfile left unchanged")
            else:
                self._write_lockfile(solution, plan.fingerprint, result)

        if path is not None:
            result.vendor_path = self.cache.export(solution.artifacts.values(), path)
        return result

    def _resolve_plan(self, plan: Reconciliation) -> Solution:
        """Resolve with the carried-over lock pins, releasing those that conflict.

        A conflict releases the pins on the cookbooks it names and on the
        cookbooks that required them. When none of those hold a pin, every
        remaining pin is released, so the last attempt is the same resolve
        that would run without a lockfile.
        """
        while True:
            try:
                return self.resolver().resolve(plan.entries, preferred=plan.preferred)
            except UnresolvableConflict as exc:
                if not plan.has_pins:
                    raise
                names: set[str] = set()
                for entry in exc.entries:
                    names.add(entry.name)
                    if entry.origin:
                        names.add(entry.origin.split("@", 1)[0])
                if not plan.release(names):
                    plan.release()
                logger.info("Locked versions conflict with the Shelffile; resolving again (%s)", exc)

    def _write_lockfile(self, solution: Solution, fingerprint: str, result: InstallResult) -> None:
        lockfile = Lockfile.from_solution(solution, fingerprint)
        try:
            lockfile.write(self.lockfile_path)
        except LockPersistFailure as exc:
            logger.warning("%s", exc)
            result.warnings.append(exc)
        else:
            logger.debug("Wrote %s", self.lockfile_path)
