"""Custom Click group with automatic help display on errors.

Usage mistakes (unknown command, missing argument, bad option value) print
the error followed by the help of the command the user was trying to run.
"""

from typing import Any

import click

_USAGE_ERRORS = (
    click.exceptions.UsageError,
    click.exceptions.BadParameter,
    click.exceptions.MissingParameter,
)


class TokenGroup(click.Group):
    """Click group that shows contextual help on usage errors."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except _USAGE_ERRORS as e:
            click.echo(f"Error: {e.format_message()}", err=True)

            # Prefer the subcommand's context so its own help is shown
            error_ctx = e.ctx if getattr(e, "ctx", None) else ctx

            click.echo("")
            click.echo(error_ctx.get_help())
            error_ctx.exit(getattr(e, "exit_code", 1))
            return None

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        """Show help when the command is not found."""
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            # Parameter errors are reported by invoke()
            if isinstance(e, click.exceptions.MissingParameter | click.exceptions.BadParameter):
                raise
            click.echo(f"Error: {e.format_message()}", err=True)
            click.echo("")
            click.echo(ctx.get_help())
            ctx.exit(2)
            return None, None, []


# Subgroups created with @group.group() also use TokenGroup
TokenGroup.group_class = TokenGroup

__all__ = ["TokenGroup"]
