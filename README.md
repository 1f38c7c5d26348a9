# gget

`gget` downloads packages published on gno.land. It asks a chain node's JSON-RPC endpoint
(`abci_query` on `vm/qfile`) for a package's file list, fetches each file and writes it to a
local directory. It can also follow a package's `gno.land/...` imports and download every
package it needs at the same time.

File lists and file contents are cached for 24 hours: up to 1,000 entries in memory, and as
JSON files on disk. The command keeps its disk cache in a `cache` directory under the current
working directory. Downloading the same package again is then served from the cache.

## Installation

```
pip install .
```

Install with `pip install .[test]` to get the test tools as well.

## Command line

```
gget gno.land/p/demo/avl --output ./avl
```

Options:

| Option | Meaning | Default |
| --- | --- | --- |
| `-o`, `--output DIR` | Directory that receives the downloaded files | `.` |
| `--rpc-endpoint URL` | RPC endpoint to query | `https://rpc.gno.land:443` |
| `--resolve-deps` | Find the package's dependencies and download them too; takes effect together with `--parallel` | off |
| `--parallel` | Download in parallel; takes effect together with `--resolve-deps` | off |
| `--max-concurrent N` | Largest number of downloads at the same time; a value that is not a number falls back to 4 | `4` |
| `--validate` | After downloading, check that the output directory holds at least one readable `.gno` file | off |
| `--force` | Download even if the output directory already exists | off |
| `--version` | Print the version and exit | |

If the output directory already exists, `gget` stops with exit status 1 unless `--force` is
given. The default output directory is `.`, which always exists, so in practice you give
`--output` or `--force`. A failed download or validation also ends with exit status 1.

To download a package and everything it imports, four at a time, and then check the result:

```
gget gno.land/r/demo/users --output ./pkgs --resolve-deps --parallel --max-concurrent 4 --validate
```

With `--resolve-deps --parallel`, each package goes to a subdirectory of the output directory
named by its full path, for example `./pkgs/gno.land/p/demo/avl`.

## Library

```python
import asyncio
from pathlib import Path

from gget.fetch import PackageManager
from gget.parallel import ParallelDownloadOptions


async def run() -> None:
    async with PackageManager(None, Path("cache")) as manager:
        await manager.download_package_atomic("gno.land/p/demo/avl", Path("avl"))
        await manager.validate_package(Path("avl"))

        summary = await manager.download_with_deps_parallel(
            "gno.land/r/demo/users",
            Path("pkgs"),
            ParallelDownloadOptions(max_concurrent=4),
        )
        print(summary)


asyncio.run(run())
```

`PackageManager(rpc_endpoint, cache_dir)` uses `https://rpc.gno.land:443` when the endpoint is
`None`. Call `aclose()` when you are done, or use it as an async context manager as above.

- `download_package(pkg_path, target_dir)` writes every file of the package into `target_dir`
  and creates the directory if needed.
- `download_package_atomic(pkg_path, target_dir)` downloads into a temporary directory next to
  the target and replaces the target only after the download succeeds. A failed download
  leaves an existing package as it was, and the temporary directory is removed.
- `validate_package(target_dir)` raises `PackageFilesError` when no `.gno` file is found below
  `target_dir`.
- `download_packages_parallel(packages, target_dir, options)` downloads several packages at
  once. Earlier packages in the list get higher priority.
- `download_with_deps_parallel(package, target_dir, options)` finds every `gno.land/` package
  that `package` depends on, directly or indirectly, and downloads all of them in parallel.

Errors are subclasses of `gget.fetch.PackageManagerError`: `HttpError`, `RpcError`,
`DirectoryCreationError`, `PackageFilesError` and `FileContentError`.

### Dependency analysis

```python
from pathlib import Path

from gget.dependency import DependencyResolver

resolver = DependencyResolver()
name, imports = resolver.extract_dependencies('package main\nimport "gno.land/p/demo/avl"\n')
packages = resolver.extract_dependencies_from_directory(Path("pkgs"))
order = resolver.generate_deployment_order(packages)
```

Only imports that start with `gno.land/` count as dependencies. Standard-library imports are
ignored. `extract_dependencies_from_directory` reads every `.gno` file below the directory. It
merges the imports of files that declare the same package name and returns a dict of
`PackageDependency` by name. `generate_deployment_order` orders packages so that each one
comes after the packages it imports. Packages in an import cycle are still included, at the
end. The ordering algorithm is a `ResolutionStrategy`. `TopoSort` is the default, and
`with_strategy` replaces it.

### Parallel downloads

`gget.parallel.DownloadManager(max_concurrent)` runs a queue of `DownloadTask`s, higher
`priority` first. `process_queue(download_fn)` calls the async `download_fn` for each task,
with at most `max_concurrent` calls running at once, and returns a `DownloadSummary`. Failed
calls are retried with exponential backoff as the task's `RetryConfig` sets out (durations in
seconds). A task that fails every attempt is listed in `summary.failed` with a
`MaxRetriesExceededError`.

`ProgressUpdate` events (`ProgressKind.STARTED`, `COMPLETED`, `FAILED`) arrive on the
`asyncio.Queue` returned by `manager.progress().get_update_receiver()`. The queue holds 100
events, and events that arrive while it is full are dropped. `get_progress()` returns the
latest `PackageProgress` of each package.

### The RPC format

`gget.query` holds the request and response shapes. `RpcRequest.to_dict()` builds the request
body, and `parse_response(payload)` decodes a reply given as text, bytes or a mapping. It
raises `ValueError` when a required field is missing.

## Limitations

- Import analysis uses a lightweight scanner, not a full Gno parser. Malformed source does not
  raise an error; it gives whatever package name and imports can be recognised. For the same
  reason, `--validate` and `validate_package` only check that `.gno` files exist and can be read.
  They do not check syntax.
- Import paths written as raw (backquoted) strings are not recognised.
- `PackageDependency.instability` is always `0.0`; no instability metric is computed.
- `TopoSort` is the only resolution strategy provided.
- There is no command to remove or clear the cache. Expired disk entries are removed when read,
  and by an hourly cleanup while a `PackageManager` runs inside an event loop.