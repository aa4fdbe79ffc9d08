from __future__ import annotations

from pathlib import Path

import pytest

from devwatch.ownership import GoImportOracle, OwnershipError, parse_imports, read_module_path


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def go_module(temp_dir: Path) -> Path:
    """A small module: cmd/app -> pkg/greet -> pkg/helper, plus unrelated pkg/other."""
    _write(temp_dir / "go.mod", "module example.com/app\n\ngo 1.22\n")
    _write(
        temp_dir / "cmd" / "app" / "main.go",
        'package main\n\nimport (\n\t"fmt"\n\n\t"example.com/app/pkg/greet"\n)\n\n'
        "func main() { fmt.Println(greet.Hello()) }\n",
    )
    _write(
        temp_dir / "pkg" / "greet" / "greet.go",
        'package greet\n\nimport h "example.com/app/pkg/helper"\n\nfunc Hello() string { return h.Name() }\n',
    )
    _write(temp_dir / "pkg" / "greet" / "greet_test.go", 'package greet\n\nimport "testing"\n')
    _write(temp_dir / "pkg" / "helper" / "helper.go", 'package helper\n\nfunc Name() string { return "x" }\n')
    _write(temp_dir / "pkg" / "other" / "other.go", "package other\n")
    return temp_dir


def test_parse_imports_handles_all_forms() -> None:
    source = """package main

// import "example.com/commented"
/* import "example.com/blocked" */
import "fmt"
import alias "example.com/app/one"
import (
	"os"
	_ "example.com/app/two"
	. "example.com/app/three" // trailing
)
"""
    assert sorted(parse_imports(source)) == sorted(
        ["fmt", "example.com/app/one", "os", "example.com/app/two", "example.com/app/three"]
    )


def test_read_module_path(go_module: Path) -> None:
    assert read_module_path(str(go_module / "go.mod")) == "example.com/app"


def test_read_module_path_errors(temp_dir: Path) -> None:
    with pytest.raises(OwnershipError):
        read_module_path(str(temp_dir / "go.mod"))
    _write(temp_dir / "go.mod", "go 1.22\n")
    with pytest.raises(OwnershipError):
        read_module_path(str(temp_dir / "go.mod"))


def test_packages_follow_transitive_imports(go_module: Path) -> None:
    oracle = GoImportOracle(str(go_module))

    packages = oracle.packages(str(go_module / "cmd" / "app" / "main.go"))

    assert packages == {
        str(go_module / "cmd" / "app"),
        str(go_module / "pkg" / "greet"),
        str(go_module / "pkg" / "helper"),
    }


@pytest.mark.parametrize(
    "relative,owned",
    [
        ("cmd/app/main.go", True),
        ("pkg/greet/greet.go", True),
        ("pkg/helper/helper.go", True),
        ("pkg/helper/new.go", True),
        ("pkg/other/other.go", False),
        ("pkg/greet/greet_test.go", False),
        ("tools/tool.go", False),
    ],
)
def test_is_owned(go_module: Path, relative: str, owned: bool) -> None:
    oracle = GoImportOracle(str(go_module))
    assert oracle.is_owned("cmd/app/main.go", str(go_module / relative), "write") is owned


def test_is_owned_accepts_absolute_main_path(go_module: Path) -> None:
    oracle = GoImportOracle(str(go_module))
    main = str(go_module / "cmd" / "app" / "main.go")
    assert oracle.is_owned(main, str(go_module / "pkg" / "helper" / "helper.go"), "create") is True


def test_new_import_is_picked_up_immediately(go_module: Path) -> None:
    oracle = GoImportOracle(str(go_module))
    other = str(go_module / "pkg" / "other" / "other.go")
    assert oracle.is_owned("cmd/app/main.go", other, "write") is False

    _write(
        go_module / "pkg" / "helper" / "helper.go",
        'package helper\n\nimport _ "example.com/app/pkg/other"\n\nfunc Name() string { return "x" }\n',
    )

    assert oracle.is_owned("cmd/app/main.go", other, "write") is True


def test_missing_main_file_raises(go_module: Path) -> None:
    oracle = GoImportOracle(str(go_module))
    with pytest.raises(OwnershipError):
        oracle.is_owned("cmd/missing/main.go", str(go_module / "pkg" / "greet" / "greet.go"), "write")


def test_missing_go_mod_raises(go_module: Path) -> None:
    (go_module / "go.mod").unlink()
    oracle = GoImportOracle(str(go_module))
    with pytest.raises(OwnershipError):
        oracle.is_owned("cmd/app/main.go", str(go_module / "pkg" / "greet" / "greet.go"), "write")
