import click

from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.core.chain import chain_commits
from unstacked.core.context import UnstackedContext
from unstacked.core.output import machine_output, user_output
from unstacked.core.remote.abc import RemoteRefUpdate


@click.command("chain")
@click.argument("commits", nargs=-1, required=True)
@click.option("--onto", required=True, help="Base to apply the commits on.")
@click.option("--merge-base", "use_merge_base", is_flag=True, help="Start from the merge-base of --onto and the commits.")
@click.option("--no-sign", is_flag=True, help="Leave rewritten commits unsigned.")
@click.option("--update-ref", "ref", help="Point this ref (e.g. refs/heads/topic) at the result.")
@click.option("--push", is_flag=True, help="Force-push --update-ref to the remote, leased on its current value.")
@click.pass_obj
@cli_error_boundary
def chain_cmd(
    ctx: UnstackedContext,
    commits: tuple[str, ...],
    onto: str,
    use_merge_base: bool,
    no_sign: bool,
    ref: str | None,
    push: bool,
) -> None:
    """Cherry-pick COMMITS, in order, on top of --onto and print the new tip."""
    Ensure.invariant(not push or ref is not None, "--push requires --update-ref")
    Ensure.invariant(ref is None or ref.startswith("refs/"), "--update-ref takes a full ref name")

    base = Ensure.commit(ctx, onto)
    oids = [Ensure.commit(ctx, commit) for commit in commits]
    key = None if no_sign else Ensure.signing_key(ctx)
    result = chain_commits(
        ctx.store,
        ctx.signer,
        ctx.repo_root,
        base,
        oids,
        use_merge_base=use_merge_base,
        signing_key=key,
    )

    if ref is not None:
        current = ctx.store.resolve_ref(ctx.repo_root, ref)
        ctx.store.update_ref(ctx.repo_root, ref, current, result.tip, "unstacked: chain")
        user_output(click.style("✓", fg="green") + f" {ref} -> {result.tip[:12]}")

    if push and ref is not None:
        remote_refs = ctx.remote.list_refs(ctx.repo_root, ctx.config.remote, ref)
        ctx.remote.push(
            ctx.repo_root,
            ctx.config.remote,
            [RemoteRefUpdate(remote_ref=ref, new=result.tip, expected=remote_refs.get(ref))],
        )
        user_output(click.style("✓", fg="green") + f" Pushed {ref} to {ctx.config.remote}")

    machine_output(result.tip)
