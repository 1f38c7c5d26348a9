import pytest

from gget.dependency import (
    DependencyError,
    DependencyGraph,
    DependencyResolver,
    PackageDependency,
    ResolutionStrategy,
    TopoSort,
)


def _pkg(name, *imports):
    return PackageDependency(name=name, imports=set(imports))


def _packages(*deps):
    return {dep.name: dep for dep in deps}


@pytest.fixture
def resolver():
    return DependencyResolver()


def test_dependency_resolver_creation(resolver):
    assert resolver.generate_deployment_order({}) == []


def test_extract_dependencies_simple(resolver):
    source = """
        package main
        import (
            "gno.land/p/demo/avl"
            "gno.land/p/demo/ufmt"
        )
        func main() {
            avl.NewTree()
            ufmt.Println("Hello")
        }
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "main"
    assert imports == {"gno.land/p/demo/avl", "gno.land/p/demo/ufmt"}


def test_extract_dependencies_with_aliases(resolver):
    source = """
        package aliases
        import (
            avl "gno.land/p/demo/avl"
            fmt "gno.land/p/demo/ufmt"
            utils "gno.land/p/demo/testutils"
        )
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "aliases"
    assert imports == {
        "gno.land/p/demo/avl",
        "gno.land/p/demo/ufmt",
        "gno.land/p/demo/testutils",
    }


def test_extract_dependencies_blank_imports(resolver):
    source = """
        package blank
        import (
            _ "gno.land/p/demo/avl"
            _ "gno.land/p/demo/ufmt"
            "gno.land/p/demo/testutils"
        )
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "blank"
    assert imports == {
        "gno.land/p/demo/avl",
        "gno.land/p/demo/ufmt",
        "gno.land/p/demo/testutils",
    }


def test_extract_dependencies_mixed_import_styles(resolver):
    source = """
        package mixed
        import (
            "fmt"
            avl "gno.land/p/demo/avl"
            _ "gno.land/p/demo/ufmt"
            "strings"
            "gno.land/p/demo/testutils"
        )
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "mixed"
    assert len(imports) == 3
    assert "gno.land/p/demo/avl" in imports
    assert "gno.land/p/demo/ufmt" in imports
    assert "gno.land/p/demo/testutils" in imports
    assert "fmt" not in imports
    assert "strings" not in imports


def test_extract_dependencies_with_standard_library(resolver):
    source = """
        package demo
        import (
            "fmt"
            "strings"
            "gno.land/p/demo/avl"
        )
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "demo"
    assert imports == {"gno.land/p/demo/avl"}


def test_extract_dependencies_single_import(resolver):
    source = """
        package single
        import "gno.land/p/demo/testutils"
    """
    assert resolver.extract_dependencies(source) == ("single", {"gno.land/p/demo/testutils"})


def test_extract_dependencies_no_imports(resolver):
    source = """
        package standalone

        func Hello() string {
            return "Hello World"
        }
    """
    assert resolver.extract_dependencies(source) == ("standalone", set())


def test_parser_reuse_across_multiple_calls(resolver):
    name1, imports1 = resolver.extract_dependencies(
        """
        package pkg1
        import "gno.land/p/demo/avl"
    """
    )
    name2, imports2 = resolver.extract_dependencies(
        """
        package pkg2
        import (
            "gno.land/p/demo/ufmt"
            "gno.land/p/demo/testutils"
        )
    """
    )
    assert (name1, len(imports1)) == ("pkg1", 1)
    assert (name2, len(imports2)) == ("pkg2", 2)


def test_invalid_gno_source(resolver):
    source = """
        this is not valid gno code at all
        ;;; syntax error ;;;
    """
    assert resolver.extract_dependencies(source) == ("", set())


def test_empty_source(resolver):
    assert resolver.extract_dependencies("") == ("", set())


def test_package_only_no_imports(resolver):
    assert resolver.extract_dependencies("package mypackage") == ("mypackage", set())


def test_bench_source(resolver):
    source = """
    package main

    import (
        "gno.land/p/demo/avl"
        "gno.land/p/demo/ufmt"
        "gno.land/r/demo/users"
        _ "gno.land/p/demo/blank"
    )

    func main() {
        // some code
    }
    """
    name, imports = resolver.extract_dependencies(source)
    assert name == "main"
    assert imports == {
        "gno.land/p/demo/avl",
        "gno.land/p/demo/ufmt",
        "gno.land/r/demo/users",
        "gno.land/p/demo/blank",
    }


def test_bench_large_file(resolver):
    entries = ",\n".join(f'    "gno.land/p/demo/import{i}"' for i in range(100))
    source = f"package main\n\nimport (\n{entries}\n)\n\nfunc main() {{\n    // some code\n}}\n"
    name, imports = resolver.extract_dependencies(source)
    assert name == "main"
    assert "gno.land/p/demo/import0" in imports


def test_comments_and_raw_strings_are_not_imports(resolver):
    source = """
        package commented
        // import "gno.land/p/demo/hidden"
        /* import "gno.land/p/demo/block" */
        import `gno.land/p/demo/raw`
        import "gno.land/p/demo/real"
    """
    assert resolver.extract_dependencies(source) == ("commented", {"gno.land/p/demo/real"})


def test_imports_in_function_bodies_are_ignored(resolver):
    source = """
        package body
        func f() {
            s := "import"
            _ = s
        }
    """
    assert resolver.extract_dependencies(source) == ("body", set())


def test_bytes_source_must_be_utf8(resolver):
    assert resolver.extract_dependencies(b"package raw") == ("raw", set())
    with pytest.raises(DependencyError):
        resolver.extract_dependencies(b"package \xff\xfe")


def test_deployment_order_simple_chain(resolver):
    packages = _packages(
        _pkg("gno.land/p/demo/A", "gno.land/p/demo/B"),
        _pkg("gno.land/p/demo/B", "gno.land/p/demo/C"),
        _pkg("gno.land/p/demo/C"),
    )
    order = resolver.generate_deployment_order(packages)
    assert len(order) == 3
    assert order.index("gno.land/p/demo/C") < order.index("gno.land/p/demo/B")
    assert order.index("gno.land/p/demo/B") < order.index("gno.land/p/demo/A")


def test_deployment_order_complex_dependencies(resolver):
    packages = _packages(
        _pkg("gno.land/p/demo/A", "gno.land/p/demo/B", "gno.land/p/demo/C"),
        _pkg("gno.land/p/demo/B", "gno.land/p/demo/D"),
        _pkg("gno.land/p/demo/C", "gno.land/p/demo/D"),
        _pkg("gno.land/p/demo/D"),
        _pkg("gno.land/p/demo/E", "gno.land/p/demo/A", "gno.land/p/demo/D"),
    )
    order = resolver.generate_deployment_order(packages)
    assert len(order) == 5
    pos = {name.rsplit("/", 1)[1]: order.index(name) for name in packages}
    assert pos["D"] < pos["B"]
    assert pos["D"] < pos["C"]
    assert pos["D"] < pos["A"]
    assert pos["D"] < pos["E"]
    assert pos["B"] < pos["A"]
    assert pos["C"] < pos["A"]
    assert pos["A"] < pos["E"]


def test_deployment_order_cyclic_dependencies(resolver):
    packages = _packages(
        _pkg("gno.land/p/demo/X", "gno.land/p/demo/Y"),
        _pkg("gno.land/p/demo/Y", "gno.land/p/demo/X"),
    )
    order = resolver.generate_deployment_order(packages)
    assert sorted(order) == ["gno.land/p/demo/X", "gno.land/p/demo/Y"]


def test_deployment_order_ignores_unknown_imports(resolver):
    packages = _packages(
        _pkg("gno.land/p/demo/A", "gno.land/p/demo/missing"),
        _pkg("gno.land/p/demo/B", "gno.land/p/demo/A"),
    )
    assert resolver.generate_deployment_order(packages) == [
        "gno.land/p/demo/A",
        "gno.land/p/demo/B",
    ]


def test_topo_sort_on_graph():
    graph = DependencyGraph(
        in_degree={"a": 1, "b": 0},
        adj={"a": [], "b": ["a"]},
    )
    assert TopoSort().resolve(graph) == ["b", "a"]


def test_with_strategy_replaces_algorithm():
    class Alphabetical(ResolutionStrategy):
        def resolve(self, graph):
            return sorted(graph.in_degree, reverse=True)

    resolver = DependencyResolver()
    assert resolver.with_strategy(Alphabetical()) is resolver
    packages = _packages(_pkg("a"), _pkg("c"), _pkg("b"))
    assert resolver.generate_deployment_order(packages) == ["c", "b", "a"]


def test_read_all_gno_files_and_extract_dependencies(tmp_path):
    (tmp_path / "subdir").mkdir()
    (tmp_path / "main.gno").write_text(
        'package main\nimport (\n    "gno.land/p/demo/avl"\n    "gno.land/p/demo/ufmt"\n)\n\n'
        'func main() {\n    avl.NewTree()\n    ufmt.Println("Hello")\n}'
    )
    (tmp_path / "utils.gno").write_text(
        'package main\nimport (\n    "gno.land/p/demo/testutils"\n    "strings"\n)\n\n'
        "func TestHelper() {\n    // test code\n}"
    )
    (tmp_path / "subdir" / "helper.gno").write_text(
        'package helper\nimport (\n    "gno.land/p/demo/json"\n    "gno.land/r/demo/users"\n)\n\n'
        "func Parse() {\n    // parse code\n}"
    )
    (tmp_path / "noImports.gno").write_text(
        "package standalone\n\nfunc Compute() int {\n    return 42\n}"
    )
    (tmp_path / "readme.md").write_text("This is a readme")

    packages = DependencyResolver().extract_dependencies_from_directory(tmp_path)

    assert set(packages) == {"main", "helper", "standalone"}
    assert packages["main"].imports == {
        "gno.land/p/demo/avl",
        "gno.land/p/demo/ufmt",
        "gno.land/p/demo/testutils",
    }
    assert packages["helper"].imports == {"gno.land/p/demo/json", "gno.land/r/demo/users"}
    assert packages["standalone"].imports == set()
    assert packages["main"].name == "main"


def test_empty_directory(tmp_path):
    assert DependencyResolver().extract_dependencies_from_directory(tmp_path) == {}


def test_missing_directory(tmp_path):
    assert DependencyResolver().extract_dependencies_from_directory(tmp_path / "nope") == {}


def test_directory_with_no_gno_files(tmp_path):
    (tmp_path / "main.go").write_text("package main")
    (tmp_path / "README.md").write_text("# README")
    (tmp_path / "config.json").write_text("{}")
    assert DependencyResolver().extract_dependencies_from_directory(tmp_path) == {}


def test_multiple_files_import_different_libraries_from_same_package(tmp_path):
    files = {
        "file1.gno": (
            "gno.land/p/demo/avl",
            "gno.land/p/demo/ufmt",
            "gno.land/p/demo/json/parser",
        ),
        "file2.gno": (
            "gno.land/p/demo/avl/node",
            "gno.land/p/demo/testutils",
            "gno.land/p/demo/json/encoder",
        ),
        "file3.gno": (
            "gno.land/p/demo/avl/tree",
            "gno.land/p/demo/ufmt/sprintf",
            "gno.land/p/demo/json",
        ),
    }
    for filename, imports in files.items():
        body = "\n".join(f'    "{imp}"' for imp in imports)
        (tmp_path / filename).write_text(
            f"package myapp\nimport (\n{body}\n)\n\nfunc Use() {{\n}}"
        )

    packages = DependencyResolver().extract_dependencies_from_directory(tmp_path)

    assert list(packages) == ["myapp"]
    assert packages["myapp"].imports == {imp for group in files.values() for imp in group}
    assert len(packages["myapp"].imports) == 9


def test_non_utf8_gno_file_raises(tmp_path):
    (tmp_path / "bad.gno").write_bytes(b"package bad\n\xff\xfe")
    with pytest.raises(DependencyError):
        DependencyResolver().extract_dependencies_from_directory(tmp_path)