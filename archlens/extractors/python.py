"""Lexical extractor for Python modules."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Set

from .base import LanguageProcessor, doc_comment_above, has_important_marker, iter_lines
from ..models import Dependency, InterfaceInfo, ParameterInfo, RepoManifest

_IMPORT_RE = re.compile(r"^\s*import\s+([\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)")
_FROM_IMPORT_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s+")
_CLASS_RE = re.compile(r"^(\s*)class\s+(\w+)\s*(?:\(([^)]*)\))?\s*:")
_DEF_RE = re.compile(r"^(\s*)(async\s+)?def\s+(\w+)\s*\(([^)]*)\)\s*(?:->\s*([^:]+))?:")


class PythonProcessor(LanguageProcessor):
    """Extracts imports, classes and functions from Python source."""

    def __init__(self, local_modules: Set[str] | None = None) -> None:
        self.local_modules: Set[str] = set(local_modules or ())

    def supported_extensions(self) -> Set[str]:
        return {"py", "pyi"}

    def language_name(self) -> str:
        return "Python"

    def prepare(self, manifest: RepoManifest) -> None:
        modules: Set[str] = set()
        for file in manifest.files:
            if not file.path.endswith((".py", ".pyi")):
                continue
            parts = file.path.split("/")
            if parts[0] in {"src", "lib"} and len(parts) > 1:
                parts = parts[1:]
            modules.add(parts[0].removesuffix(".pyi").removesuffix(".py"))
        self.local_modules = modules

    def extract_dependencies(self, content: str, path: Path) -> List[Dependency]:
        source = str(path)
        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            match = _FROM_IMPORT_RE.match(line)
            if match:
                module = match.group(1)
                if module.strip("."):
                    dependencies.append(
                        Dependency(
                            name=module,
                            source_path=source,
                            is_external=self._is_external(module),
                            line_number=line_number,
                            dependency_type="from_import",
                        )
                    )
                continue

            match = _IMPORT_RE.match(line)
            if not match:
                continue
            for item in match.group(1).split(","):
                module = item.split(" as ")[0].strip()
                if not module:
                    continue
                dependencies.append(
                    Dependency(
                        name=module,
                        source_path=source,
                        is_external=self._is_external(module),
                        line_number=line_number,
                        dependency_type="import",
                    )
                )
        return dependencies

    def _is_external(self, module: str) -> bool:
        if module.startswith("."):
            return False
        return module.split(".")[0] not in self.local_modules

    def extract_interfaces(self, content: str, path: Path) -> List[InterfaceInfo]:
        lines = content.splitlines()
        interfaces: List[InterfaceInfo] = []
        for index, line in enumerate(lines):
            match = _CLASS_RE.match(line)
            if match:
                indent, name, bases = match.groups()
                kind = "class"
                if bases and ("ABC" in bases or "Protocol" in bases):
                    kind = "abstract_class"
                elif bases and "Enum" in bases:
                    kind = "enum"
                interfaces.append(
                    InterfaceInfo(
                        name=name,
                        interface_type=kind if not indent else f"nested_{kind}",
                        visibility=_visibility(name),
                        description=_comment_block(lines, index),
                    )
                )
                continue

            match = _DEF_RE.match(line)
            if not match:
                continue
            indent, is_async, name, params, returns = match.groups()
            if indent:
                kind = "constructor" if name == "__init__" else "method"
            else:
                kind = "function"
            if is_async and kind != "constructor":
                kind = f"async_{kind}"
            decorators = _decorators_above(lines, index)
            if "abstractmethod" in decorators:
                kind = "abstract_method"
            elif "staticmethod" in decorators:
                kind = "static_method"
            elif "property" in decorators:
                kind = "property"
            interfaces.append(
                InterfaceInfo(
                    name=name,
                    interface_type=kind,
                    visibility=_visibility(name),
                    parameters=parse_parameters(params),
                    return_type=returns.strip() if returns else None,
                    description=_comment_block(lines, index),
                )
            )
        return interfaces

    def determine_component_type(self, path: Path, content: str) -> str:
        name = path.name
        if name.startswith("test_") or name.endswith("_test.py") or name == "conftest.py":
            return "python_test"
        if name == "__init__.py":
            return "python_package_init"
        if name == "__main__.py" or 'if __name__ == "__main__"' in content:
            return "python_entrypoint"
        if name.endswith(".pyi"):
            return "python_stub"
        return "python_module"

    def is_important_line(self, line: str) -> bool:
        trimmed = line.strip()
        if trimmed.startswith(("class ", "def ", "async def ", "import ", "from ", "@")):
            return True
        return trimmed.startswith("#") and has_important_marker(trimmed)


def parse_parameters(raw: str) -> List[ParameterInfo]:
    """Parse a single-line Python parameter list."""
    parameters: List[ParameterInfo] = []
    depth = 0
    chunk: List[str] = []
    chunks: List[str] = []
    for char in raw:
        if char in "[(":
            depth += 1
        elif char in "])":
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            chunks.append("".join(chunk))
            chunk = []
            continue
        chunk.append(char)
    chunks.append("".join(chunk))

    for item in chunks:
        declaration, has_default, _ = item.partition("=")
        name, _, annotation = declaration.partition(":")
        name = name.strip().lstrip("*")
        if not name or name in {"self", "cls", "/"}:
            continue
        parameters.append(
            ParameterInfo(
                name=name,
                declared_type=annotation.strip() or "Any",
                is_optional=bool(has_default),
            )
        )
    return parameters


def _visibility(name: str) -> str:
    if name.startswith("__") and name.endswith("__"):
        return "public"
    return "private" if name.startswith("_") else "public"


def _decorators_above(lines: List[str], index: int) -> Set[str]:
    names: Set[str] = set()
    for position in range(index - 1, -1, -1):
        stripped = lines[position].strip()
        if not stripped.startswith("@"):
            break
        names.add(stripped[1:].split("(")[0].split(".")[-1])
    return names


def _comment_block(lines: List[str], index: int) -> Optional[str]:
    return doc_comment_above(
        lines,
        index,
        comment_text=lambda stripped: stripped[1:].strip() if stripped.startswith("#") else None,
        is_attribute=lambda stripped: stripped.startswith("@"),
    )


__all__ = ["PythonProcessor"]
