"""Command-line entry point: download a Gno package from a chain node."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .fetch import DEFAULT_RPC_ENDPOINT, PackageManager, PackageManagerError
from .parallel import ParallelDownloadOptions

VERSION = "0.1.0"
DEFAULT_MAX_CONCURRENT = 4
CACHE_DIR = "cache"


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the gget command."""
    parser = argparse.ArgumentParser(
        prog="gget",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "add",
        help="Package path to download.\nExample: gget add gno.land/p/demo/avl",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="DIR",
        default=".",
        help="Output directory for downloaded files.\nDefault: ./gno",
    )
    parser.add_argument(
        "--rpc-endpoint",
        metavar="URL",
        default=DEFAULT_RPC_ENDPOINT,
        help=f"RPC endpoint URL.\nDefault: {DEFAULT_RPC_ENDPOINT}",
    )
    parser.add_argument(
        "--resolve-deps",
        action="store_true",
        help="Automatically resolve and download dependencies",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate downloaded packages",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Force download even if package already exists",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Download packages in parallel (when used with --resolve-deps)",
    )
    parser.add_argument(
        "--max-concurrent",
        metavar="N",
        default=str(DEFAULT_MAX_CONCURRENT),
        help="Maximum number of concurrent downloads",
    )
    return parser


def _parse_max_concurrent(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        return DEFAULT_MAX_CONCURRENT
    return number if number >= 0 else DEFAULT_MAX_CONCURRENT


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


async def _run(args: argparse.Namespace, target: Path, max_concurrent: int) -> int:
    async with PackageManager(args.rpc_endpoint, CACHE_DIR) as pm:
        if args.parallel and args.resolve_deps:
            print(f"Using parallel download with {max_concurrent} concurrent downloads")
            options = ParallelDownloadOptions(max_concurrent=max_concurrent, show_progress=True)
            try:
                summary = await pm.download_with_deps_parallel(args.add, target, options)
            except PackageManagerError as exc:
                return _fail(f"Error: {exc}")
            print("\nDownload complete!")
            print(summary)
            if args.validate:
                print("\nValidating packages...")
                try:
                    await pm.validate_package(target)
                except PackageManagerError as exc:
                    return _fail(f"Validation failed: {exc}")
                print("All packages are valid!")
        else:
            try:
                await pm.download_package(args.add, target)
            except PackageManagerError as exc:
                return _fail(f"Error: {exc}")
            print("Download complete!")
            if args.validate:
                print("Validating package...")
                try:
                    await pm.validate_package(target)
                except PackageManagerError as exc:
                    return _fail(f"Validation failed: {exc}")
                print("Package is valid!")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the command and return its exit status."""
    args = build_parser().parse_args(argv)
    target = Path(args.output)
    max_concurrent = _parse_max_concurrent(args.max_concurrent)

    print(f"Downloading package: {args.add}")
    print(f"Output directory: {args.output}")
    print(f"RPC endpoint: {args.rpc_endpoint}")

    if target.exists() and not args.force:
        return _fail(f"Package already exists at {target}. Use --force to overwrite.")

    return asyncio.run(_run(args, target, max_concurrent))


if __name__ == "__main__":
    sys.exit(main())