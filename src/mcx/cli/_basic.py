"""Basic commands: ls, stat."""

from __future__ import annotations

import click

from ..client import DirOpt
from ..exceptions import MCXError
from ._helpers import (
    _command_context,
    _emit,
    _encryption_options,
    _human_size,
    _load_keys,
    _registry,
    _report_error,
    main,
)


def _time_str(when) -> str:
    return when.strftime("%Y-%m-%d %H:%M:%S %Z") if when is not None else ""


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@click.argument("target")
@click.option("-r", "--recursive", is_flag=True, help="List recursively.")
@click.option("-I", "--incomplete", is_flag=True, help="List incomplete uploads.")
@_encryption_options
@click.pass_context
def ls(ctx, target, recursive, incomplete):
    """List objects and directories.

    \b
    Examples:
        mcx ls s3                      # buckets
        mcx ls s3/bucket/photos/
        mcx ls -r ./backups
    """
    registry = _registry(ctx)
    failed = 0
    with _command_context() as root:
        try:
            location, client = registry.client_for(target)
        except MCXError as exc:
            raise click.ClickException(str(exc))
        for content in client.list(root, recursive=recursive, incomplete=incomplete,
                                   dir_opt=DirOpt.NONE):
            if not content.ok:
                _report_error(ctx, content.error, location.aliased(content.url))
                failed += 1
                continue
            key = location.aliased(content.url)
            _emit(ctx, {
                "status": "success", "key": key, "size": content.size,
                "lastModified": content.time.isoformat() if content.time else None,
                "type": "folder" if content.is_dir else "file", "etag": content.etag,
            }, f"[{_time_str(content.time)}] {_human_size(content.size):>9} {key}")
    if failed:
        raise click.ClickException(f"Failed to list {failed} path(s)")


# ---------------------------------------------------------------------------
# stat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("target")
@click.option("--preserve", "-a", is_flag=True, help="Include filesystem attributes.")
@_encryption_options
@click.pass_context
def stat(ctx, target, preserve):
    """Show object metadata.

    \b
    Examples:
        mcx stat s3/bucket/report.pdf
        mcx stat --encrypt-key "s3/bucket/=32byteslongsecretkeymustbegiven1" s3/bucket/x
    """
    keys = _load_keys(ctx)
    registry = _registry(ctx)
    with _command_context() as root:
        try:
            _, client = registry.client_for(target)
            content = client.stat(root, preserve=preserve, sse=keys.resolve(target))
        except MCXError as exc:
            raise click.ClickException(str(exc))

    if ctx.obj.get("json"):
        _emit(ctx, {
            "status": "success", "key": target, "size": content.size,
            "lastModified": content.time.isoformat() if content.time else None,
            "type": "folder" if content.is_dir else "file", "etag": content.etag,
            "metadata": content.metadata,
        }, "")
        return
    click.echo(f"Name      : {target}")
    click.echo(f"Date      : {_time_str(content.time)}")
    click.echo(f"Size      : {_human_size(content.size)}")
    if content.etag:
        click.echo(f"ETag      : {content.etag}")
    click.echo(f"Type      : {'folder' if content.is_dir else 'file'}")
    if content.metadata:
        click.echo("Metadata  :")
        for k in sorted(content.metadata):
            click.echo(f"  {k}: {content.metadata[k]}")
