"""Tests for the Python processor."""

from __future__ import annotations

from pathlib import Path

from archlens.extractors.python import PythonProcessor, parse_parameters


def test_imports_split_local_and_external(repo_builder) -> None:
    repo_builder.write(
        {
            "src/shop/__init__.py": "",
            "src/shop/orders.py": "",
            "tools.py": "",
        }
    )
    processor = PythonProcessor()
    processor.prepare(repo_builder.scan())

    content = "\n".join(
        [
            "import os, json as j",
            "from shop.orders import Order",
            "from . import models",
            "from .utils import helper",
            "import tools",
            "from requests import Session",
        ]
    )
    deps = processor.extract_dependencies(content, Path("src/shop/api.py"))

    assert [(d.name, d.is_external, d.dependency_type, d.line_number) for d in deps] == [
        ("os", True, "import", 1),
        ("json", True, "import", 1),
        ("shop.orders", False, "from_import", 2),
        (".utils", False, "from_import", 4),
        ("tools", False, "import", 5),
        ("requests", True, "from_import", 6),
    ]


def test_interfaces_with_kinds_parameters_and_comments() -> None:
    content = '''
from abc import ABC, abstractmethod


# Storage port used by services.
class Repository(ABC):
    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self.url = url

    @abstractmethod
    def fetch(self, key: str) -> bytes:
        ...

    @staticmethod
    def _normalise(key):
        return key

    async def refresh(self, *keys: str) -> None:
        pass


async def main(argv: list[str] | None = None) -> int:
    return 0
'''

    interfaces = PythonProcessor().extract_interfaces(content, Path("repo.py"))
    summary = [(i.name, i.interface_type, i.visibility) for i in interfaces]

    assert summary == [
        ("Repository", "abstract_class", "public"),
        ("__init__", "constructor", "public"),
        ("fetch", "abstract_method", "public"),
        ("_normalise", "static_method", "private"),
        ("refresh", "async_method", "public"),
        ("main", "async_function", "public"),
    ]
    repository = interfaces[0]
    assert repository.description == "Storage port used by services."

    constructor = interfaces[1]
    assert [(p.name, p.declared_type, p.is_optional) for p in constructor.parameters] == [
        ("url", "str", False),
        ("timeout", "float", True),
    ]
    assert constructor.return_type == "None"
    assert interfaces[-1].return_type == "int"


def test_parse_parameters_respects_nested_brackets() -> None:
    params = parse_parameters("self, mapping: dict[str, int], *args, key=None, **kwargs")

    assert [(p.name, p.declared_type, p.is_optional) for p in params] == [
        ("mapping", "dict[str, int]", False),
        ("args", "Any", False),
        ("key", "Any", True),
        ("kwargs", "Any", False),
    ]


def test_component_types() -> None:
    processor = PythonProcessor()

    assert processor.determine_component_type(Path("tests/test_api.py"), "") == "python_test"
    assert processor.determine_component_type(Path("pkg/__init__.py"), "") == "python_package_init"
    assert (
        processor.determine_component_type(Path("pkg/cli.py"), 'if __name__ == "__main__":\n    main()')
        == "python_entrypoint"
    )
    assert processor.determine_component_type(Path("pkg/types.pyi"), "") == "python_stub"
    assert processor.determine_component_type(Path("pkg/models.py"), "x = 1") == "python_module"


def test_malformed_python_never_raises() -> None:
    processor = PythonProcessor()
    for content in ["def broken(", "class :", "from import", "import", "\x00\x00", "async def x(a, b"]:
        assert isinstance(processor.extract_dependencies(content, Path("bad.py")), list)
        assert isinstance(processor.extract_interfaces(content, Path("bad.py")), list)
