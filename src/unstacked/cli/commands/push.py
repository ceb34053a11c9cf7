import click

from unstacked.cli.core import load
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.cli.rendering import render_reconciliation, short
from unstacked.core.context import UnstackedContext, with_dry_run
from unstacked.core.errors import DivergedRemote
from unstacked.core.output import user_output
from unstacked.core.reconcile import Relationship


@click.command("push")
@click.argument("name")
@click.option(
    "--force-diverged",
    "force_ids",
    multiple=True,
    help="Overwrite this diverged branch (change id, or 'base'). Repeatable.",
)
@click.option("-y", "--yes", is_flag=True, help="Do not prompt; diverged branches are skipped.")
@click.option("--dry-run", is_flag=True, help="Show what would be pushed.")
@click.pass_obj
@cli_error_boundary
def push_cmd(ctx: UnstackedContext, name: str, force_ids: tuple[str, ...], yes: bool, dry_run: bool) -> None:
    """Publish the branches of stack NAME with leased force-pushes.

    Branches somebody else has written to are never overwritten unless named
    with --force-diverged or confirmed interactively.
    """
    if dry_run:
        ctx = with_dry_run(ctx)

    stack = load(ctx, name)
    reconciler = ctx.reconciler()
    records = reconciler.compare(stack)
    render_reconciliation(records)

    forced = set(force_ids)
    for record in records:
        if record.relationship != Relationship.DIVERGED or record.change_id in forced or yes:
            continue
        prompt = (
            f"Branch {record.branch} holds {short(record.remote)}, which this tool did not write. "
            "Overwrite it?"
        )
        if click.confirm(prompt, default=False, err=True):
            forced.add(record.change_id)

    report = reconciler.push(stack, force_diverged=frozenset(forced), records=records)
    user_output(
        click.style("✓", fg="green")
        + f" Pushed {len(report.pushed)} branches, {len(report.up_to_date)} already up to date"
    )
    if report.skipped_diverged:
        raise DivergedRemote(tuple(record.branch for record in report.skipped_diverged))
