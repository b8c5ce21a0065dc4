"""Gallery CLI — operate a local package registry store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from gallery import __version__
from gallery.auth.models import User
from gallery.config import GalleryConfig, load_config
from gallery.errors import GalleryError, NotFound
from gallery.indexing import notifier_for
from gallery.registry.models import ConfirmOwnershipResult, PackageVersion, Registration
from gallery.registry.ownership import OwnershipWorkflow
from gallery.registry.service import PackageService
from gallery.storage.store import GalleryStore

console = Console()


@dataclass
class AppContext:
    config: GalleryConfig
    store: GalleryStore
    packages: PackageService
    owners: OwnershipWorkflow


pass_app = click.make_pass_decorator(AppContext)


@contextmanager
def _reporting_errors():
    try:
        yield
    except GalleryError as e:
        console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e


def _require_registration(app: AppContext, package_id: str) -> Registration:
    registration = app.packages.directory.find_registration(package_id)
    if registration is None:
        raise NotFound(f"Package '{package_id}' does not exist")
    return registration


def _require_version(app: AppContext, package_id: str, version: str) -> PackageVersion:
    package = app.packages.directory.find_version(package_id, version)
    if package is None:
        raise NotFound(f"Package '{package_id}' has no version '{version}'")
    return package


def _flags(package: PackageVersion) -> str:
    flags = []
    if package.is_latest:
        flags.append("[green]latest[/]")
    if package.is_latest_stable:
        flags.append("[green]stable[/]")
    if package.is_prerelease:
        flags.append("[yellow]pre[/]")
    if not package.listed:
        flags.append("[dim]unlisted[/]")
    if package.deleted:
        flags.append("[red]deleted[/]")
    return " ".join(flags)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, type=click.Path(exists=True), help="YAML config file")
@click.option("--store-dir", "-s", default=None, help="Store directory (overrides config)")
@click.option("--verbose", "-v", is_flag=True, help="Log registry activity")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], store_dir: Optional[str], verbose: bool):
    """Gallery — registration, version and ownership bookkeeping for a package registry."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    config = load_config(config_path)
    if store_dir:
        config.store_dir = store_dir

    store = GalleryStore(config.store_dir)
    ctx.obj = AppContext(
        config=config,
        store=store,
        packages=PackageService(store, notifier_for(config.index_url, config.index_timeout), config),
        owners=OwnershipWorkflow(store, request_delete_attempts=config.request_delete_attempts),
    )


# ── Upload ───────────────────────────────────────────────────────────


@main.command()
@click.argument("manifest_path", type=click.Path(exists=True))
@pass_app
def validate(app: AppContext, manifest_path: str):
    """Check a package manifest against the registry limits."""
    from gallery.registry.metadata import load_manifest
    from gallery.registry.validator import check_metadata, resolve_supported_frameworks

    console.print(f"\n[bold blue]Gallery[/] — Validating: {manifest_path}\n")

    try:
        metadata = load_manifest(manifest_path)
    except (OSError, ValueError) as e:
        console.print(f"  [red]Failed to parse:[/] {e}")
        raise SystemExit(1) from e

    issues = check_metadata(metadata, app.config.max_package_id_length)
    try:
        resolve_supported_frameworks(metadata.supported_frameworks)
    except GalleryError as e:
        issues.append(e)

    if issues:
        for issue in issues:
            console.print(f"  [red]x[/] {issue}")
        raise SystemExit(1)

    console.print(f"  [green]v[/] {metadata.id} {metadata.version} is valid")


@main.command()
@click.argument("manifest_path", type=click.Path(exists=True))
@click.option("--as", "username", required=True, help="Uploading account")
@click.option("--artifact", "-a", default=None, type=click.Path(exists=True), help="Package file to hash")
@pass_app
def upload(app: AppContext, manifest_path: str, username: str, artifact: Optional[str]):
    """Register a package version described by MANIFEST_PATH."""
    from gallery.registry.metadata import PackageStreamMetadata, load_manifest

    try:
        metadata = load_manifest(manifest_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Failed to parse:[/] {e}")
        raise SystemExit(1) from e

    stream = PackageStreamMetadata.from_file(artifact or manifest_path)
    with _reporting_errors():
        package = app.packages.create_package(metadata, stream, User(key=username))

    console.print(f"  Created: [cyan]{package.qualified_id}[/] {_flags(package)}")


# ── Directory ────────────────────────────────────────────────────────


@main.command()
@click.argument("package_id")
@click.argument("version", required=False)
@click.option("--no-prerelease", is_flag=True, help="Ignore prerelease versions")
@pass_app
def show(app: AppContext, package_id: str, version: Optional[str], no_prerelease: bool):
    """Show a package version (latest when VERSION is omitted)."""
    with _reporting_errors():
        package = app.packages.directory.find_version(
            package_id, version, allow_prerelease=not no_prerelease
        )
        if package is None:
            raise NotFound(f"No matching version of '{package_id}'")

    registration = package.registration
    owners = ", ".join(o.username for o in registration.owners)
    body = (
        f"[bold]{registration.id}[/] {package.version} {_flags(package)}\n"
        f"{package.summary or package.description}\n\n"
        f"Owners: {owners}\n"
        f"Authors: {package.flattened_authors}\n"
        f"Frameworks: {', '.join(package.supported_frameworks) or '-'}"
    )
    console.print(Panel(body, title="Package"))

    table = Table(title="Versions")
    table.add_column("Version", style="cyan")
    table.add_column("Flags")
    table.add_column("Created", style="dim")
    for v in registration.versions:
        table.add_row(v.version, _flags(v), v.created[:19])
    console.print(table)


@main.command()
@click.argument("username")
@click.option("--include-unlisted", is_flag=True, help="Fall back to unlisted versions")
@pass_app
def owned(app: AppContext, username: str, include_unlisted: bool):
    """List the packages owned by USERNAME."""
    packages = app.packages.directory.find_by_owner(User(key=username), include_unlisted)
    if not packages:
        console.print(f"[yellow]{username} owns no packages.[/]")
        return

    table = Table(title=f"Packages owned by {username} ({len(packages)})")
    table.add_column("Id", style="cyan")
    table.add_column("Version")
    table.add_column("Flags")
    for package in sorted(packages, key=lambda p: p.package_id.lower()):
        table.add_row(package.package_id, package.version, _flags(package))
    console.print(table)


@main.command()
@click.argument("package_id")
@click.argument("version")
@pass_app
def dependents(app: AppContext, package_id: str, version: str):
    """List versions of other packages that accept PACKAGE_ID VERSION."""
    with _reporting_errors():
        package = _require_version(app, package_id, version)

    found = app.packages.directory.find_dependents(package)
    if not found:
        console.print("[yellow]No dependents found.[/]")
        return
    for dependent in found:
        console.print(f"  [cyan]{dependent.qualified_id}[/]")


# ── Listing ──────────────────────────────────────────────────────────


@main.command(name="list")
@click.argument("package_id")
@click.argument("version")
@pass_app
def list_version(app: AppContext, package_id: str, version: str):
    """Make an unlisted version visible again."""
    with _reporting_errors():
        package = _require_version(app, package_id, version)
        app.packages.mark_listed(package)
    console.print(f"  Listed: {package.qualified_id} {_flags(package)}")


@main.command()
@click.argument("package_id")
@click.argument("version")
@pass_app
def unlist(app: AppContext, package_id: str, version: str):
    """Hide a version from latest selection and default listings."""
    with _reporting_errors():
        package = _require_version(app, package_id, version)
        app.packages.mark_unlisted(package)
    console.print(f"  Unlisted: {package.qualified_id}")


# ── Owners ───────────────────────────────────────────────────────────


@main.group()
def owners():
    """Manage package co-ownership."""


@owners.command()
@click.argument("package_id")
@click.argument("candidate")
@click.option("--as", "username", required=True, help="Current owner making the request")
@pass_app
def request(app: AppContext, package_id: str, candidate: str, username: str):
    """Invite CANDIDATE to co-own PACKAGE_ID."""
    with _reporting_errors():
        registration = _require_registration(app, package_id)
        owner_request = app.owners.request_transfer(registration, User(key=username), User(key=candidate))

    console.print(f"  Requested ownership of {registration.id} for {candidate}")
    console.print(f"  Confirmation token: [bold]{owner_request.confirmation_code}[/]")


@owners.command()
@click.argument("package_id")
@click.argument("token")
@click.option("--as", "username", required=True, help="Account accepting the invitation")
@pass_app
def confirm(app: AppContext, package_id: str, token: str, username: str):
    """Accept an ownership invitation for PACKAGE_ID."""
    with _reporting_errors():
        registration = _require_registration(app, package_id)
        result = app.owners.confirm(registration, User(key=username), token)

    if result == ConfirmOwnershipResult.success:
        console.print(f"  [green]{username} now owns {registration.id}[/]")
    elif result == ConfirmOwnershipResult.already_owner:
        console.print(f"  [yellow]{username} already owns {registration.id}[/]")
    else:
        console.print("  [red]Confirmation failed.[/]")
        raise SystemExit(1)


@owners.command()
@click.argument("package_id")
@click.argument("username")
@pass_app
def remove(app: AppContext, package_id: str, username: str):
    """Remove USERNAME as owner, or cancel their pending invitation."""
    with _reporting_errors():
        registration = _require_registration(app, package_id)
        app.owners.remove_owner(registration, User(key=username))
    console.print(f"  Removed {username} from {registration.id}")


if __name__ == "__main__":
    main()
