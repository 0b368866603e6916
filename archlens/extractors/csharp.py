"""Lexical extractor for C# sources, MSBuild projects, solutions and SQL projects."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, List, Optional, Set

from .base import (
    LanguageProcessor,
    doc_comment_above,
    extension_of,
    has_important_marker,
    iter_lines,
)
from ..models import Dependency, InterfaceInfo, ParameterInfo

_VISIBILITY = r"(public|private|protected|internal)?"

_USING_RE = re.compile(r"^\s*using\s+([^;]+);")
_NAMESPACE_RE = re.compile(r"^\s*namespace\s+([^;\{]+)")
_CLASS_RE = re.compile(
    rf"^\s*{_VISIBILITY}\s*(static)?\s*(abstract)?\s*(sealed)?\s*(partial)?\s*class\s+(\w+)"
)
_INTERFACE_RE = re.compile(rf"^\s*{_VISIBILITY}\s*(partial)?\s*interface\s+(\w+)")
_STRUCT_RE = re.compile(rf"^\s*{_VISIBILITY}\s*(readonly)?\s*(partial)?\s*struct\s+(\w+)")
_ENUM_RE = re.compile(rf"^\s*{_VISIBILITY}\s*enum\s+(\w+)")
_PROPERTY_RE = re.compile(
    rf"^\s*{_VISIBILITY}\s*(static)?\s*(virtual|override|abstract)?\s*([\w<>\[\]?,]+)\s+(\w+)\s*\{{\s*(get|set)"
)
_METHOD_RE = re.compile(
    rf"^\s*{_VISIBILITY}\s*(static)?\s*(virtual|override|abstract|sealed)?\s*(async)?\s*"
    r"([\w<>\[\]?]+)\s+(\w+)\s*\(([^)]*)\)"
)
_CONSTRUCTOR_RE = re.compile(rf"^\s*{_VISIBILITY}\s*(\w+)\s*\(([^)]*)\)")

# Statements that the method pattern would otherwise read as a return type.
_NON_TYPE_KEYWORDS = {
    "if",
    "for",
    "while",
    "foreach",
    "switch",
    "try",
    "catch",
    "using",
    "lock",
    "return",
    "new",
    "await",
    "throw",
    "else",
    "public",
    "private",
    "protected",
    "internal",
}

_PARAMETER_MODIFIERS = {"ref", "out", "in", "params", "this"}

_SQL_TABLE_CLAUSES = (" FROM ", " JOIN ", "INSERT INTO ", "DELETE FROM ")


class CSharpProcessor(LanguageProcessor):
    """Extracts usings, declarations and project references for the .NET toolchain."""

    def supported_extensions(self) -> Set[str]:
        return {"cs", "csproj", "sln", "sqlproj", "sql"}

    def language_name(self) -> str:
        return "C#"

    # ------------------------------------------------------------------
    # Dependencies

    def extract_dependencies(self, content: str, path: Path) -> List[Dependency]:
        source = str(path)
        block_scanners: dict[str, Callable[[str, str], List[Dependency]]] = {
            "csproj": self._csproj_dependencies,
            "sqlproj": self._sqlproj_dependencies,
            "sln": self._sln_dependencies,
            "sql": self._sql_dependencies,
        }
        scanner = block_scanners.get(extension_of(path))
        if scanner is not None:
            return scanner(content, source)

        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            using = _USING_RE.match(line)
            if using:
                target = using.group(1).strip()
                # using static / aliases / using-declarations are not namespace imports
                if not (target.startswith(("static ", "(")) or "=" in target):
                    dependencies.append(
                        Dependency(
                            name=target.split(".")[-1],
                            source_path=source,
                            is_external=(
                                target.startswith(("System", "Microsoft")) or "." not in target
                            ),
                            line_number=line_number,
                            dependency_type="using",
                        )
                    )

            namespace = _NAMESPACE_RE.match(line)
            if namespace:
                dependencies.append(
                    Dependency(
                        name=namespace.group(1).strip(),
                        source_path=source,
                        is_external=False,
                        line_number=line_number,
                        dependency_type="namespace",
                    )
                )
        return dependencies

    def _csproj_dependencies(self, content: str, source: str) -> List[Dependency]:
        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            trimmed = line.strip()
            if trimmed.startswith("<PackageReference"):
                package = _quoted_attribute(trimmed, "Include")
                if package:
                    dependencies.append(
                        Dependency(
                            name=package,
                            source_path=source,
                            is_external=True,
                            line_number=line_number,
                            dependency_type="nuget_package",
                            version=_quoted_attribute(trimmed, "Version"),
                        )
                    )
            elif trimmed.startswith("<ProjectReference"):
                project = _quoted_attribute(trimmed, "Include")
                if project:
                    dependencies.append(
                        Dependency(
                            name=_file_stem(project, ".csproj"),
                            source_path=source,
                            is_external=False,
                            line_number=line_number,
                            dependency_type="project_reference",
                        )
                    )
            elif trimmed.startswith("<FrameworkReference"):
                framework = _quoted_attribute(trimmed, "Include")
                if framework:
                    dependencies.append(
                        Dependency(
                            name=framework,
                            source_path=source,
                            is_external=True,
                            line_number=line_number,
                            dependency_type="framework_reference",
                        )
                    )
        return dependencies

    def _sln_dependencies(self, content: str, source: str) -> List[Dependency]:
        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            trimmed = line.strip()
            if not trimmed.startswith("Project(") or ".csproj" not in trimmed:
                continue
            start = trimmed.find('= "')
            if start < 0:
                continue
            remainder = trimmed[start + 3 :]
            end = remainder.find('"')
            if end <= 0:
                continue
            dependencies.append(
                Dependency(
                    name=remainder[:end],
                    source_path=source,
                    is_external=False,
                    line_number=line_number,
                    dependency_type="solution_project",
                )
            )
        return dependencies

    def _sqlproj_dependencies(self, content: str, source: str) -> List[Dependency]:
        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            trimmed = line.strip()
            include = _quoted_attribute(trimmed, "Include")
            if not include:
                continue
            if trimmed.startswith(("<Build", "<PreDeploy", "<PostDeploy")):
                parts = re.split(r"[/\\.]", include)
                object_type = parts[-3] if len(parts) > 2 else "sql_object"
                object_name = parts[-2] if len(parts) > 1 else "unknown"
                dependencies.append(
                    Dependency(
                        name=object_name,
                        source_path=source,
                        is_external=False,
                        line_number=line_number,
                        dependency_type=object_type,
                    )
                )
            elif trimmed.startswith("<ProjectReference"):
                dependencies.append(
                    Dependency(
                        name=_file_stem(include, ".sqlproj"),
                        source_path=source,
                        is_external=False,
                        line_number=line_number,
                        dependency_type="database_reference",
                    )
                )
            elif trimmed.startswith("<ArtifactReference"):
                dependencies.append(
                    Dependency(
                        name=_file_stem(include, ".dacpac"),
                        source_path=source,
                        is_external=True,
                        line_number=line_number,
                        dependency_type="dacpac_reference",
                    )
                )
        return dependencies

    def _sql_dependencies(self, content: str, source: str) -> List[Dependency]:
        dependencies: List[Dependency] = []
        for line_number, line in iter_lines(content):
            trimmed = line.strip()
            if trimmed.startswith(("--", "/*")):
                continue
            # Leading space lets clauses at the start of a line match " FROM " etc.
            padded = f" {line}"
            upper = padded.upper()

            for clause in _SQL_TABLE_CLAUSES:
                table = _token_after(padded, upper, clause)
                if table:
                    dependencies.append(
                        Dependency(
                            name=table,
                            source_path=source,
                            is_external=False,
                            line_number=line_number,
                            dependency_type="table_reference",
                        )
                    )

            if " UPDATE " in upper and "UPDATE STATISTICS" not in upper:
                table = _token_after(padded, upper, " UPDATE ")
                if table:
                    dependencies.append(
                        Dependency(
                            name=table,
                            source_path=source,
                            is_external=False,
                            line_number=line_number,
                            dependency_type="table_reference",
                        )
                    )

            marker = "EXECUTE " if "EXECUTE " in upper else "EXEC "
            procedure = _token_after(padded, upper, marker, reject_prefix="@")
            if procedure:
                dependencies.append(
                    Dependency(
                        name=procedure,
                        source_path=source,
                        is_external=False,
                        line_number=line_number,
                        dependency_type="stored_procedure_call",
                    )
                )
        return dependencies

    # ------------------------------------------------------------------
    # Interfaces

    def extract_interfaces(self, content: str, path: Path) -> List[InterfaceInfo]:
        if extension_of(path) != "cs":
            return []

        lines = content.splitlines()
        interfaces: List[InterfaceInfo] = []
        for index, line in enumerate(lines):
            found = self._declarations_on_line(line)
            if not found:
                continue
            description = _xml_doc(lines, index)
            for info in found:
                info.description = description
                interfaces.append(info)
        return interfaces

    def _declarations_on_line(self, line: str) -> List[InterfaceInfo]:
        found: List[InterfaceInfo] = []

        match = _CLASS_RE.match(line)
        if match:
            visibility, is_static, is_abstract, is_sealed, is_partial, name = match.groups()
            kind = "class"
            if is_static:
                kind = "static_class"
            elif is_abstract:
                kind = "abstract_class"
            elif is_sealed:
                kind = "sealed_class"
            elif is_partial:
                kind = "partial_class"
            found.append(InterfaceInfo(name=name, interface_type=kind, visibility=visibility or "private"))

        match = _INTERFACE_RE.match(line)
        if match:
            visibility, is_partial, name = match.groups()
            found.append(
                InterfaceInfo(
                    name=name,
                    interface_type="partial_interface" if is_partial else "interface",
                    visibility=visibility or "private",
                )
            )

        match = _STRUCT_RE.match(line)
        if match:
            visibility, is_readonly, is_partial, name = match.groups()
            kind = "struct"
            if is_readonly:
                kind = "readonly_struct"
            elif is_partial:
                kind = "partial_struct"
            found.append(InterfaceInfo(name=name, interface_type=kind, visibility=visibility or "private"))

        match = _ENUM_RE.match(line)
        if match:
            visibility, name = match.groups()
            found.append(InterfaceInfo(name=name, interface_type="enum", visibility=visibility or "private"))

        match = _PROPERTY_RE.match(line)
        if match:
            visibility, is_static, modifier, return_type, name, _accessor = match.groups()
            kind = "property"
            if is_static:
                kind = "static_property"
            elif modifier:
                kind = f"{modifier}_property"
            found.append(
                InterfaceInfo(
                    name=name,
                    interface_type=kind,
                    visibility=visibility or "private",
                    return_type=return_type,
                )
            )

        match = _METHOD_RE.match(line)
        if match:
            visibility, is_static, modifier, is_async, return_type, name, params = match.groups()
            if return_type not in _NON_TYPE_KEYWORDS and name not in _NON_TYPE_KEYWORDS:
                kind = "method"
                if is_static:
                    kind = "static_method"
                elif is_async:
                    kind = "async_method"
                elif modifier:
                    kind = f"{modifier}_method"
                found.append(
                    InterfaceInfo(
                        name=name,
                        interface_type=kind,
                        visibility=visibility or "private",
                        parameters=parse_parameters(params),
                        return_type=return_type,
                    )
                )

        match = _CONSTRUCTOR_RE.match(line)
        if match:
            visibility, name, params = match.groups()
            if name[:1].isupper():
                found.append(
                    InterfaceInfo(
                        name=name,
                        interface_type="constructor",
                        visibility=visibility or "private",
                        parameters=parse_parameters(params),
                    )
                )

        return found

    # ------------------------------------------------------------------
    # Classification

    def determine_component_type(self, path: Path, content: str) -> str:
        file_name = path.name
        extension = extension_of(path)

        if extension == "csproj":
            if "Microsoft.NET.Sdk.Web" in content:
                return "csharp_web_project"
            if "<OutputType>Exe</OutputType>" in content:
                return "csharp_console_project"
            if "Microsoft.NET.Test.Sdk" in content or "Test" in file_name:
                return "csharp_test_project"
            if "<OutputType>Library</OutputType>" in content or "Microsoft.NET.Sdk" in content:
                return "csharp_library_project"
            return "csharp_project"

        if extension == "sqlproj":
            return "sql_database_project"

        if extension == "sln":
            return "csharp_solution"

        if extension == "sql":
            upper = content.upper()
            if "CREATE TABLE" in upper or "ALTER TABLE" in upper:
                return "sql_table_definition"
            if "CREATE PROCEDURE" in upper or "ALTER PROCEDURE" in upper:
                return "sql_stored_procedure"
            if "CREATE VIEW" in upper or "ALTER VIEW" in upper:
                return "sql_view"
            if "CREATE FUNCTION" in upper or "ALTER FUNCTION" in upper:
                return "sql_function"
            if "CREATE TRIGGER" in upper:
                return "sql_trigger"
            return "sql_script"

        if file_name.endswith(("Test.cs", "Tests.cs")) or "[Test]" in content or "[TestMethod]" in content:
            return "csharp_test"

        for marker, component in (
            ("interface ", "csharp_interface"),
            ("enum ", "csharp_enum"),
            ("struct ", "csharp_struct"),
            ("abstract class", "csharp_abstract_class"),
            ("static class", "csharp_static_class"),
            ("sealed class", "csharp_sealed_class"),
            ("partial class", "csharp_partial_class"),
            ("class ", "csharp_class"),
        ):
            if marker in content:
                return component
        return "csharp_file"

    def is_important_line(self, line: str) -> bool:
        trimmed = line.strip()
        if trimmed.startswith(
            (
                "class ",
                "interface ",
                "enum ",
                "struct ",
                "public ",
                "private ",
                "protected ",
                "internal ",
                "using ",
                "namespace ",
            )
        ):
            return True
        if trimmed.startswith("[") and "]" in trimmed:
            return True
        return has_important_marker(trimmed)


def parse_parameters(raw: str) -> List[ParameterInfo]:
    """Parse a C# parameter list such as ``ref int count, string name = null``."""
    parameters: List[ParameterInfo] = []
    for chunk in _split_top_level(raw):
        declaration, _, default = chunk.partition("=")
        parts = declaration.split()
        while parts and parts[0] in _PARAMETER_MODIFIERS:
            parts = parts[1:]
        if len(parts) < 2:
            continue
        parameters.append(
            ParameterInfo(
                name=parts[-1],
                declared_type=" ".join(parts[:-1]),
                is_optional=bool(default.strip()),
            )
        )
    return parameters


def _split_top_level(raw: str) -> List[str]:
    chunks: List[str] = []
    depth = 0
    current: List[str] = []
    for char in raw:
        if char in "<[(":
            depth += 1
        elif char in ">])":
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            chunks.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        chunks.append(tail)
    return [chunk for chunk in chunks if chunk]


def _xml_doc(lines: List[str], index: int) -> Optional[str]:
    return doc_comment_above(
        lines,
        index,
        comment_text=_xml_doc_text,
        is_attribute=lambda stripped: stripped.startswith("["),
    )


def _xml_doc_text(stripped: str) -> Optional[str]:
    if not stripped.startswith("///"):
        return None
    text = stripped[3:].strip()
    if text.startswith("<summary>"):
        return text.removeprefix("<summary>").removesuffix("</summary>").strip()
    if text.endswith("</summary>"):
        return text.removesuffix("</summary>").strip()
    if text.startswith("<") or text.endswith(">"):
        return ""
    return text


def _quoted_attribute(line: str, attribute: str) -> Optional[str]:
    marker = f'{attribute}="'
    start = line.find(marker)
    if start < 0:
        return None
    remainder = line[start + len(marker) :]
    end = remainder.find('"')
    if end < 0:
        return None
    return remainder[:end]


def _file_stem(reference: str, suffix: str) -> str:
    name = re.split(r"[/\\]", reference)[-1]
    return name.removesuffix(suffix)


def _token_after(
    line: str, upper: str, clause: str, *, reject_prefix: str | None = None
) -> Optional[str]:
    position = upper.find(clause)
    if position < 0:
        return None
    tokens = line[position + len(clause) :].split()
    if not tokens:
        return None
    if reject_prefix and tokens[0].startswith(reject_prefix):
        return None
    token = _strip_identifier(tokens[0])
    return token or None


def _strip_identifier(token: str) -> str:
    def keep(char: str) -> bool:
        return char.isalnum() or char in "._[]"

    start = 0
    end = len(token)
    while start < end and not keep(token[start]):
        start += 1
    while end > start and not keep(token[end - 1]):
        end -= 1
    return token[start:end]


__all__ = ["CSharpProcessor", "parse_parameters"]
