"""Object lock commands: retention, legalhold."""

from __future__ import annotations

import click

from ..client import ContentDescriptor, DirOpt
from ..copy import TransferRequest, upload_source_to_target
from ..exceptions import MCXError
from ..retention import LEGAL_HOLD_OFF, LEGAL_HOLD_ON, parse_validity, validate_mode
from ._helpers import (
    _command_context,
    _emit,
    _encryption_options,
    _load_keys,
    _registry,
    _report_error,
    main,
)


def _objects(root, registry, target, recursive):
    """Yield ``(aliased_url, error)`` for *target* or every object below it."""
    if not recursive:
        yield target, None
        return
    location, client = registry.client_for(target)
    for content in client.list(root, recursive=True, dir_opt=DirOpt.NONE):
        url = location.aliased(content.url)
        if not content.ok:
            yield url, content.error
        elif not content.is_dir:
            yield url, None


# ---------------------------------------------------------------------------
# retention
# ---------------------------------------------------------------------------

@main.group()
def retention():
    """Manage object retention."""


@retention.command("set")
@click.argument("mode")
@click.argument("validity")
@click.argument("target")
@click.option("-r", "--recursive", is_flag=True, help="Apply to every object below TARGET.")
@click.option("--bypass", is_flag=True, help="Bypass governance retention.")
@_encryption_options
@click.pass_context
def retention_set(ctx, mode, validity, target, recursive, bypass):
    """Set retention MODE for VALIDITY (e.g. 30d, 1y) on TARGET.

    \b
    Examples:
        mcx retention set GOVERNANCE 30d s3/bucket/report.pdf
        mcx retention set -r COMPLIANCE 1y s3/bucket/archive/
    """
    try:
        mode = validate_mode(mode)
        parse_validity(validity)
    except MCXError as exc:
        raise click.ClickException(exc.message)
    keys = _load_keys(ctx)
    registry = _registry(ctx)

    failed = 0
    with _command_context() as root:
        try:
            for url, err in _objects(root, registry, target, recursive):
                if err is not None:
                    _report_error(ctx, err, url)
                    failed += 1
                    continue
                alias = registry.resolve(url).alias
                request = TransferRequest(
                    alias, ContentDescriptor(url=url, retention_enabled=True,
                                             bypass_governance=bypass),
                    alias, ContentDescriptor(url=url, retention_enabled=True,
                                             retention_mode=mode,
                                             retention_duration=validity),
                )
                result = upload_source_to_target(root, request, registry=registry, keys=keys)
                if not result.ok:
                    _report_error(ctx, result.error, url)
                    failed += 1
                    continue
                _emit(ctx, {"status": "success", "url": url, "mode": mode,
                            "validity": validity},
                      f"Object retention `{mode}` set for `{url}` ({validity}).")
        except MCXError as exc:
            raise click.ClickException(str(exc))
    if failed:
        raise click.ClickException(f"Failed to set retention on {failed} object(s)")


# ---------------------------------------------------------------------------
# legalhold
# ---------------------------------------------------------------------------

@main.group()
def legalhold():
    """Manage object legal hold."""


def _apply_legal_hold(ctx, target, recursive, state):
    registry = _registry(ctx)
    failed = 0
    with _command_context() as root:
        try:
            for url, err in _objects(root, registry, target, recursive):
                if err is None:
                    try:
                        _, client = registry.client_for(url)
                        client.put_legal_hold(root, state)
                    except MCXError as exc:
                        err = exc
                if err is not None:
                    _report_error(ctx, err, url)
                    failed += 1
                    continue
                _emit(ctx, {"status": "success", "url": url, "legalhold": state},
                      f"Legal hold `{state}` for `{url}`.")
        except MCXError as exc:
            raise click.ClickException(str(exc))
    if failed:
        raise click.ClickException(f"Failed to update legal hold on {failed} object(s)")


@legalhold.command("set")
@click.argument("target")
@click.option("-r", "--recursive", is_flag=True, help="Apply to every object below TARGET.")
@click.pass_context
def legalhold_set(ctx, target, recursive):
    """Enable legal hold on TARGET."""
    _apply_legal_hold(ctx, target, recursive, LEGAL_HOLD_ON)


@legalhold.command("clear")
@click.argument("target")
@click.option("-r", "--recursive", is_flag=True, help="Apply to every object below TARGET.")
@click.pass_context
def legalhold_clear(ctx, target, recursive):
    """Disable legal hold on TARGET."""
    _apply_legal_hold(ctx, target, recursive, LEGAL_HOLD_OFF)
