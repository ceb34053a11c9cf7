from dataclasses import dataclass, replace
from pathlib import Path

import click

from unstacked.core.config import UnstackedConfig, config_dir_for, load_config
from unstacked.core.output import user_output
from unstacked.core.reconcile import Reconciler
from unstacked.core.remote.abc import Remote
from unstacked.core.remote.dry_run import DryRunRemote
from unstacked.core.remote.real import RealRemote
from unstacked.core.signing.abc import Signer
from unstacked.core.signing.dry_run import DryRunSigner
from unstacked.core.signing.gpg import GpgSigner
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.dry_run import DryRunObjectStore
from unstacked.core.store.real import RealObjectStore
from unstacked.core.sync.engine import SyncEngine


@dataclass(frozen=True)
class UnstackedContext:
    """Immutable context holding all dependencies for unstacked operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    store: ObjectStore
    signer: Signer
    remote: Remote
    config: UnstackedConfig
    repo_root: Path
    config_dir: Path
    dry_run: bool

    @property
    def signing_key(self) -> str | None:
        """Configured signing key, falling back to git's user.signingkey."""
        if self.config.signing_key is not None:
            return self.config.signing_key
        return self.store.read_config(self.repo_root, "user.signingkey")

    def engine(self) -> SyncEngine:
        return SyncEngine(self.store, self.signer, self.repo_root, self.signing_key)

    def reconciler(self) -> Reconciler:
        return Reconciler(
            self.store,
            self.remote,
            self.repo_root,
            self.config.remote,
            self.config.branch_prefix,
        )

    @staticmethod
    def for_test(
        store: ObjectStore | None = None,
        signer: Signer | None = None,
        remote: Remote | None = None,
        config: UnstackedConfig | None = None,
        repo_root: Path | None = None,
        config_dir: Path | None = None,
        dry_run: bool = False,
    ) -> "UnstackedContext":
        """Create test context with optional pre-configured gateways.

        Args:
            store: Optional ObjectStore. If None, creates empty FakeObjectStore.
            signer: Optional Signer. If None, creates FakeSigner accepting any key.
            remote: Optional Remote. If None, creates FakeRemote with no refs.
            config: Optional UnstackedConfig. If None, uses defaults.
            repo_root: Optional repository root. If None, uses Path("/test/repo").
            config_dir: Optional config directory. If None, uses <repo_root>/.git/unstacked.
            dry_run: Whether to enable dry-run mode (default False).

        Example:
            >>> store = FakeObjectStore(objects=graph.objects, refs=graph.refs)
            >>> ctx = UnstackedContext.for_test(store=store)
        """
        from unstacked.core.remote.fake import FakeRemote
        from unstacked.core.signing.fake import FakeSigner
        from unstacked.core.store.fake import FakeObjectStore

        root = repo_root if repo_root is not None else Path("/test/repo")
        return UnstackedContext(
            store=store if store is not None else FakeObjectStore(repo_root=root),
            signer=signer if signer is not None else FakeSigner(),
            remote=remote if remote is not None else FakeRemote(),
            config=config if config is not None else UnstackedConfig(),
            repo_root=root,
            config_dir=config_dir if config_dir is not None else config_dir_for(root / ".git"),
            dry_run=dry_run,
        )


def with_dry_run(ctx: UnstackedContext) -> UnstackedContext:
    """Wrap the context's gateways so nothing is signed, moved or pushed."""
    if ctx.dry_run:
        return ctx
    return replace(
        ctx,
        store=DryRunObjectStore(ctx.store),
        signer=DryRunSigner(ctx.signer),
        remote=DryRunRemote(ctx.remote),
        dry_run=True,
    )


def create_context(*, repo: Path | None, dry_run: bool) -> UnstackedContext:
    """Create production context with real implementations.

    Args:
        repo: Directory inside the repository to operate on; defaults to cwd
        dry_run: If True, wrap gateways with dry-run wrappers that print
                 intended actions without executing them
    """
    store: ObjectStore = RealObjectStore()
    try:
        repo_root = store.discover_repo_root(repo if repo is not None else Path.cwd())
    except RuntimeError:
        user_output(click.style("Error: ", fg="red") + "Not inside a git repository")
        raise SystemExit(1) from None

    config_dir = config_dir_for(store.get_git_dir(repo_root))
    config = load_config(config_dir)
    program = config.gpg_program or store.read_config(repo_root, "gpg.program") or "gpg"

    ctx = UnstackedContext(
        store=store,
        signer=GpgSigner(program),
        remote=RealRemote(),
        config=config,
        repo_root=repo_root,
        config_dir=config_dir,
        dry_run=False,
    )
    if dry_run:
        return with_dry_run(ctx)
    return ctx
