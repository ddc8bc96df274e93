"""CLI entry point: parse args, load config, run a linker command."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn

from repo_linker.lib.catalog import CatalogUnavailableError
from repo_linker.lib.config import Config
from repo_linker.lib.github import GitHubClient, sync_catalog
from repo_linker.lib.launcher import LaunchKind, ProcessLauncher
from repo_linker.lib.linker import RepositoryLinker


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for CLI mode."""
    parser = argparse.ArgumentParser(
        prog="repo-linker",
        description="Link local git working copies to a repository catalog.",
    )
    parser.add_argument(
        "--catalog",
        default=None,
        help="Catalog JSON file (overrides REPO_LINKER_CATALOG).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable verbose output.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="Scan a work folder and link clones.")
    scan.add_argument("--owner", default=None, help="Catalog owner to link.")
    scan.add_argument("--work-folder", default=None, help="Folder to scan.")

    cleanup = commands.add_parser("cleanup", help="Clear links that no longer verify.")
    cleanup.add_argument("--owner", default=None, help="Catalog owner to check.")

    clone = commands.add_parser("clone", help="Clone a catalog repository.")
    clone.add_argument("repo_id", type=int, help="Catalog repository id.")
    clone.add_argument("--work-folder", default=None, help="Folder to clone into.")

    open_ = commands.add_parser("open", help="Open a linked repository.")
    open_.add_argument("repo_id", type=int, help="Catalog repository id.")
    open_.add_argument(
        "--kind",
        choices=[kind.value for kind in LaunchKind],
        default=LaunchKind.EDITOR.value,
        help="Tool to open the working copy in.",
    )

    path = commands.add_parser("path", help="Print a repository's local path.")
    path.add_argument("repo_id", type=int, help="Catalog repository id.")

    list_ = commands.add_parser("list", help="List catalog repositories.")
    list_.add_argument("--owner", default=None, help="Catalog owner to list.")

    sync = commands.add_parser("sync", help="Refresh the catalog from GitHub.")
    sync.add_argument("--owner", default=None, help="GitHub user or organization.")
    return parser


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _require(value: str, what: str, flag: str, env: str) -> str:
    if not value:
        _fail(f"{what} is required. Pass {flag} or set {env}.")
    return value


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.from_env(
            overrides={
                "work_folder": getattr(args, "work_folder", None),
                "owner": getattr(args, "owner", None),
                "catalog_path": args.catalog,
                "verbose": args.verbose,
            }
        )
    except ValueError as exc:
        _fail(str(exc))
    _configure_logging(config.verbose)

    try:
        _run(args, config)
    except (CatalogUnavailableError, OSError) as exc:
        _fail(str(exc))


def _run(args: argparse.Namespace, config: Config) -> None:
    linker = RepositoryLinker.from_config(config)
    store = linker.catalog

    if args.command == "scan":
        owner = _require(config.owner, "Owner", "--owner", "REPO_LINKER_OWNER")
        folder = _require(
            config.work_folder,
            "Work folder",
            "--work-folder",
            "REPO_LINKER_WORK_FOLDER",
        )
        report = linker.scan_and_link(folder, owner)
        n = report.linked
        print(
            f"Linked {n} repositor{'ies' if n != 1 else 'y'} "
            f"({report.scanned} scanned, {report.cleaned} stale links cleared)."
        )
        for repo_id, local_path in sorted(report.links.items()):
            print(f"  {repo_id}\t{local_path}")
        return

    if args.command == "cleanup":
        owner = _require(config.owner, "Owner", "--owner", "REPO_LINKER_OWNER")
        cleaned = linker.cleanup_invalid_links(owner)
        print(f"Cleared {cleaned} invalid link{'s' if cleaned != 1 else ''}.")
        return

    if args.command == "clone":
        folder = _require(
            config.work_folder,
            "Work folder",
            "--work-folder",
            "REPO_LINKER_WORK_FOLDER",
        )
        if store.get_repository(args.repo_id) is None:
            _fail(f"repository {args.repo_id} is not in the catalog")
        local_path = linker.clone_catalog_repository(args.repo_id, folder)
        if local_path is None:
            _fail(f"could not clone repository {args.repo_id} into {folder}")
        print(local_path)
        return

    if args.command == "open":
        repo = store.get_repository(args.repo_id)
        if repo is None:
            _fail(f"repository {args.repo_id} is not in the catalog")
        if not repo.local_path:
            _fail(f"repository {repo.full_name} is not linked to a local path")
        if not ProcessLauncher().launch(LaunchKind(args.kind), repo.local_path):
            _fail(f"could not open {repo.local_path} in {args.kind}")
        print(f"Opened {repo.local_path} in {args.kind}.")
        return

    if args.command == "path":
        if store.get_repository(args.repo_id) is None:
            _fail(f"repository {args.repo_id} is not in the catalog")
        local_path = linker.get_local_path(args.repo_id)
        if local_path is None:
            _fail(f"repository {args.repo_id} is not linked to a local path")
        print(local_path)
        return

    if args.command == "list":
        owner = _require(config.owner, "Owner", "--owner", "REPO_LINKER_OWNER")
        for repo in store.list_repositories(owner):
            link = repo.local_path if repo.is_linked else "-"
            print(f"{repo.id}\t{repo.full_name}\t{link}")
        return

    if args.command == "sync":
        owner = _require(config.owner, "Owner", "--owner", "REPO_LINKER_OWNER")
        if not config.has_token:
            _fail("a GitHub token is required. Set GITHUB_TOKEN or GH_TOKEN.")
        with GitHubClient(token=config.github_token) as client:
            try:
                count = sync_catalog(client, store, owner)
            except RuntimeError as exc:
                _fail(str(exc))
        print(f"Synced {count} repositor{'ies' if count != 1 else 'y'} for {owner}.")
        return


if __name__ == "__main__":
    main()
