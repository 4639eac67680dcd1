"""The cp command."""

from __future__ import annotations

import click

from .._exclude import ExcludeFilter
from ..client import ContentDescriptor
from ..copy import parse_attrs, prepare_copy_urls, upload_source_to_target
from ..exceptions import MCXError
from ..retention import parse_validity, validate_legal_hold, validate_mode
from ._helpers import (
    _command_context,
    _emit,
    _encryption_options,
    _human_size,
    _load_keys,
    _registry,
    _report_error,
    _status,
    main,
)


def _target_template(target, attr, retention_mode, retention_duration, legal_hold):
    """Per-target overrides shared by every transfer request."""
    template = ContentDescriptor(url=target)
    try:
        if attr:
            template.user_metadata = parse_attrs(attr)
        if retention_mode or retention_duration:
            if not (retention_mode and retention_duration):
                raise click.ClickException(
                    "--retention-mode and --retention-duration must be given together")
            template.retention_enabled = True
            template.retention_mode = validate_mode(retention_mode)
            parse_validity(retention_duration)
            template.retention_duration = retention_duration
        if legal_hold:
            template.legal_hold_enabled = True
            template.legal_hold = validate_legal_hold(legal_hold)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    except MCXError as exc:
        raise click.ClickException(exc.message)
    return template


@main.command()
@click.argument("args", nargs=-1, required=True)
@click.option("-r", "--recursive", is_flag=True, help="Copy recursively.")
@click.option("--attr", default=None,
              help="Metadata for the target: 'key1=value1;key2=value2'.")
@click.option("--preserve", "-a", is_flag=True,
              help="Preserve filesystem attributes (mode, timestamps).")
@click.option("--retention-mode", default=None, help="GOVERNANCE or COMPLIANCE.")
@click.option("--retention-duration", default=None, help="Retention validity, e.g. 30d or 1y.")
@click.option("--legal-hold", default=None, help="Set legal hold ON or OFF.")
@click.option("--disable-multipart", is_flag=True, help="Disable multipart upload.")
@click.option("--md5", is_flag=True, help="Require an MD5 checksum on upload.")
@click.option("--exclude", "excludes", multiple=True,
              help="Exclude keys matching pattern (gitignore syntax, repeatable).")
@click.option("--exclude-from", type=click.Path(exists=True, dir_okay=False),
              help="Read exclude patterns from file.")
@_encryption_options
@click.pass_context
def cp(ctx, args, recursive, attr, preserve, retention_mode, retention_duration,
       legal_hold, disable_multipart, md5, excludes, exclude_from):
    """Copy objects.

    The last argument is the target.  Copies within one alias run on the
    backend; anything else streams through this process.

    \b
    Examples:
        mcx cp report.pdf s3/bucket/reports/
        mcx cp -r photos/ s3/bucket/photos/
        mcx cp s3/bucket/a.txt s3/bucket/b.txt         # server-side copy
        mcx cp --attr "Cache-Control=max-age=90;Artist=Unknown" a.mp3 s3/music/
        mcx cp --retention-mode GOVERNANCE --retention-duration 30d a.txt s3/locked/
        mcx cp --legal-hold ON a.txt s3/locked/
    """
    if len(args) < 2:
        raise click.UsageError("cp requires at least one source and a target")
    *sources, target = args

    keys = _load_keys(ctx)
    registry = _registry(ctx)
    template = _target_template(target, attr, retention_mode, retention_duration, legal_hold)
    exclude = None
    if excludes or exclude_from:
        exclude = ExcludeFilter(patterns=excludes, exclude_from=exclude_from)

    failed = 0
    total = 0
    with _command_context() as root:
        try:
            requests = prepare_copy_urls(
                root, sources, target, recursive=recursive, registry=registry,
                keys=keys, template=template, exclude=exclude, preserve=preserve,
                disable_multipart=disable_multipart, md5=md5)
            for request in requests:
                if request.error is not None:
                    _report_error(ctx, request.error, request.source.url)
                    failed += 1
                    continue
                result = upload_source_to_target(root, request, registry=registry,
                                                 keys=keys, preserve=preserve)
                if not result.ok:
                    _report_error(ctx, result.error, request.source.url)
                    failed += 1
                    continue
                total += result.size
                _emit(ctx, {"status": "success", "source": request.source.url,
                            "target": request.target.url, "size": result.size},
                      f"`{request.source.url}` -> `{request.target.url}`")
        except MCXError as exc:
            raise click.ClickException(str(exc))
    _status(ctx, f"Copied {_human_size(total)}")

    if failed:
        raise click.ClickException(f"Failed to copy {failed} object(s)")
