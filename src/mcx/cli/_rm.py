"""The rm command."""

from __future__ import annotations

import sys

import click

from .._age import AgeFilter
from .._exclude import ExcludeFilter
from ..exceptions import MCXError
from ..remove import check_rm_syntax, remove_recursive, remove_single
from ._helpers import (
    _command_context,
    _emit,
    _encryption_options,
    _load_keys,
    _registry,
    _report_error,
    _status,
    main,
)


@main.command()
@click.argument("targets", nargs=-1)
@click.option("-r", "--recursive", is_flag=True, help="Remove recursively.")
@click.option("--force", is_flag=True, help="Allow a recursive remove operation.")
@click.option("--dangerous", is_flag=True, help="Allow site-wide removal of objects.")
@click.option("-I", "--incomplete", is_flag=True, help="Remove incomplete uploads.")
@click.option("--fake", is_flag=True, help="Perform a fake remove operation.")
@click.option("--stdin", "use_stdin", is_flag=True, help="Read object names from STDIN.")
@click.option("--older-than", default=None,
              help="Remove objects older than L days, M hours and N minutes (e.g. 7d10h).")
@click.option("--newer-than", default=None,
              help="Remove objects newer than L days, M hours and N minutes.")
@click.option("--bypass", is_flag=True, help="Bypass governance retention.")
@click.option("--exclude", "excludes", multiple=True,
              help="Exclude keys matching pattern (gitignore syntax, repeatable).")
@click.option("--exclude-from", type=click.Path(exists=True, dir_okay=False),
              help="Read exclude patterns from file.")
@_encryption_options
@click.pass_context
def rm(ctx, targets, recursive, force, dangerous, incomplete, fake, use_stdin,
       older_than, newer_than, bypass, excludes, exclude_from):
    """Remove objects.

    Recursive removal and --stdin require --force; removing every bucket
    of an alias also requires --dangerous.

    \b
    Examples:
        mcx rm 1999/old-backup.tgz
        mcx rm --fake 1999/old-backup.tgz
        mcx rm -r --force s3/jazz-songs/louis/
        mcx rm -r --force --older-than 90d s3/jazz-songs/louis/
        mcx rm -r --force --newer-than 7d10h s3/pop-songs/
        mcx rm --force --stdin < names.txt
        mcx rm -r --force --dangerous s3
    """
    keys = _load_keys(ctx)
    registry = _registry(ctx)
    try:
        age = AgeFilter.parse(older_than, newer_than)
    except MCXError as exc:
        raise click.ClickException(str(exc))
    exclude = None
    if excludes or exclude_from:
        exclude = ExcludeFilter(patterns=excludes, exclude_from=exclude_from)

    def _on_remove(key, content):
        _emit(ctx, {"status": "success", "key": key, "size": content.size},
              f"Removing `{key}`.")

    def _targets():
        yield from targets
        if use_stdin:
            for line in sys.stdin:
                line = line.strip()
                if line:
                    yield line

    failed = 0
    with _command_context() as root:
        try:
            check_rm_syntax(root, list(targets), recursive=recursive, force=force,
                            dangerous=dangerous, stdin=use_stdin,
                            registry=registry, keys=keys)
        except MCXError as exc:
            raise click.ClickException(exc.message)

        for url in _targets():
            if recursive:
                result = remove_recursive(
                    root, url, registry=registry, keys=keys, incomplete=incomplete,
                    fake=fake, bypass=bypass, age=age, exclude=exclude,
                    on_remove=_on_remove)
            else:
                result = remove_single(
                    root, url, registry=registry, keys=keys, incomplete=incomplete,
                    fake=fake, force=force, bypass=bypass, age=age,
                    on_remove=_on_remove)
            for err in result.errors:
                _report_error(ctx, err)
            if not result.ok:
                failed += 1
            _status(ctx, f"{url}: {len(result.removed)} object(s)"
                         f"{' selected' if fake else ' removed'}")

    if failed:
        raise click.ClickException(f"Failed to remove {failed} target(s)")
