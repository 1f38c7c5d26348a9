"""Import analysis and deployment ordering for Gno packages."""

from __future__ import annotations

import abc
import os
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, NamedTuple

GNO_LAND_PREFIX = "gno.land/"
GNO_FILE_EXTENSION = ".gno"


class DependencyError(Exception):
    """Raised when sources cannot be read or decoded."""


@dataclass
class PackageDependency:
    """A package and the gno.land packages it imports."""

    name: str
    imports: set[str] = field(default_factory=set)
    instability: float = 0.0


@dataclass
class DependencyGraph:
    """Incoming edge counts and dependents of each package."""

    in_degree: dict[str, int] = field(default_factory=dict)
    adj: dict[str, list[str]] = field(default_factory=dict)


class ResolutionStrategy(abc.ABC):
    """Algorithm that turns a dependency graph into a deployment order."""

    @abc.abstractmethod
    def resolve(self, graph: DependencyGraph) -> list[str]:
        """Return package names in deployment order."""


class TopoSort(ResolutionStrategy):
    """Kahn's algorithm; packages left in cycles are appended at the end."""

    def resolve(self, graph: DependencyGraph) -> list[str]:
        in_degree = dict(graph.in_degree)
        queue = deque(node for node, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for dependent in graph.adj.get(current, ()):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
        placed = set(order)
        order.extend(
            node for node, degree in in_degree.items() if degree > 0 and node not in placed
        )
        return order


class _Token(NamedTuple):
    kind: str
    text: str


_TOKEN_RE = re.compile(
    r"""
      (?P<space>\s+)
    | (?P<comment>//[^\n]*|/\*.*?(?:\*/|\Z))
    | (?P<string>"(?:[^"\\\n]|\\.)*")
    | (?P<badstring>"(?:[^"\\\n]|\\.)*)
    | (?P<raw>`[^`]*`?)
    | (?P<rune>'(?:[^'\\\n]|\\.)*'?)
    | (?P<ident>[^\W\d]\w*)
    | (?P<number>\d[\w.]*)
    | (?P<op>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_KEYWORDS = frozenset(
    {
        "break", "case", "chan", "const", "continue", "default", "defer", "else",
        "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
        "map", "package", "range", "return", "select", "struct", "switch", "type",
        "var",
    }
)

_DECLARATION_KEYWORDS = frozenset({"func", "type", "var", "const", "import", "package"})


def _tokens(source: str) -> Iterator[_Token]:
    for match in _TOKEN_RE.finditer(source):
        kind = match.lastgroup
        if kind in ("space", "comment"):
            continue
        yield _Token(kind, match.group())


class _SourceScanner:
    """Finds the package clause and top-level import paths of a Gno file."""

    def __init__(self, source: str) -> None:
        self._tokens = list(_tokens(source))
        self._pos = 0

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _advance(self) -> _Token | None:
        token = self._peek()
        if token is not None:
            self._pos += 1
        return token

    def scan(self) -> tuple[str, set[str]]:
        package = ""
        imports: set[str] = set()
        depth = 0
        while (token := self._advance()) is not None:
            if token.kind == "op":
                if token.text == "{":
                    depth += 1
                elif token.text == "}":
                    depth = max(0, depth - 1)
            elif depth == 0 and token.kind == "ident":
                if token.text == "package":
                    name = self._peek()
                    if name is not None and name.kind == "ident" and name.text not in _KEYWORDS:
                        package = name.text
                        self._pos += 1
                elif token.text == "import":
                    imports.update(
                        path for path in self._import_paths() if path.startswith(GNO_LAND_PREFIX)
                    )
        return package, imports

    def _import_paths(self) -> Iterator[str]:
        token = self._peek()
        if token is None or token != _Token("op", "("):
            path = self._spec()
            if path is not None:
                yield path
            return
        self._pos += 1
        while (token := self._peek()) is not None:
            if token == _Token("op", ")"):
                self._pos += 1
                return
            if token == _Token("op", "{") or (
                token.kind == "ident" and token.text in _DECLARATION_KEYWORDS
            ):
                return
            path = self._spec()
            if path is None:
                self._pos += 1
            else:
                yield path

    def _spec(self) -> str | None:
        start = self._pos
        token = self._peek()
        if token is not None and (
            (token.kind == "ident" and token.text not in _KEYWORDS) or token == _Token("op", ".")
        ):
            self._pos += 1
            token = self._peek()
        if token is not None and token.kind == "string":
            self._pos += 1
            return token.text.strip('"')
        self._pos = start
        return None


class DependencyResolver:
    """Extracts gno.land imports from sources and orders packages for deployment."""

    def __init__(self, strategy: ResolutionStrategy | None = None) -> None:
        self._strategy: ResolutionStrategy = strategy if strategy is not None else TopoSort()

    def extract_dependencies(self, source_code: str | bytes) -> tuple[str, set[str]]:
        """Return the package name and the gno.land imports of one source file."""
        if isinstance(source_code, bytes):
            try:
                source_code = source_code.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DependencyError(f"UTF-8 decoding error: {exc}") from exc
        if not isinstance(source_code, str):
            raise DependencyError("Failed to parse source code")
        return _SourceScanner(source_code).scan()

    def extract_dependencies_from_directory(
        self, directory: str | os.PathLike[str]
    ) -> dict[str, PackageDependency]:
        """Scan every .gno file below a directory, merging imports per package name."""
        packages: dict[str, PackageDependency] = {}
        self._visit_directory(Path(directory), packages)
        return packages

    def generate_deployment_order(self, packages: dict[str, PackageDependency]) -> list[str]:
        """Order packages so that each comes after the packages it imports."""
        return self._strategy.resolve(self._build_dependency_graph(packages))

    def with_strategy(self, strategy: ResolutionStrategy) -> DependencyResolver:
        """Use another resolution strategy; returns the resolver itself."""
        self._strategy = strategy
        return self

    def _visit_directory(self, directory: Path, packages: dict[str, PackageDependency]) -> None:
        if not directory.is_dir():
            return
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            raise DependencyError(f"IO error: Failed to read directory: {exc}") from exc
        for path in entries:
            if path.is_dir():
                self._visit_directory(path, packages)
            elif path.suffix == GNO_FILE_EXTENSION:
                self._process_gno_file(path, packages)

    def _process_gno_file(self, path: Path, packages: dict[str, PackageDependency]) -> None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DependencyError(f"IO error: Failed to read file: {exc}") from exc
        name, imports = self.extract_dependencies(content)
        existing = packages.get(name)
        if existing is not None:
            existing.imports |= imports
        else:
            packages[name] = PackageDependency(name=name, imports=imports)

    @staticmethod
    def _build_dependency_graph(packages: dict[str, PackageDependency]) -> DependencyGraph:
        graph = DependencyGraph(
            in_degree={name: 0 for name in packages},
            adj={name: [] for name in packages},
        )
        for name, package in packages.items():
            for imported in sorted(package.imports):
                if imported in packages:
                    graph.in_degree[name] += 1
                    graph.adj[imported].append(name)
        return graph