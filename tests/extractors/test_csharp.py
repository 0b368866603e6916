"""Tests for the C# / MSBuild / SQL processor."""

from __future__ import annotations

from pathlib import Path

import pytest

from archlens.extractors.csharp import CSharpProcessor, parse_parameters


@pytest.fixture
def processor() -> CSharpProcessor:
    return CSharpProcessor()


def test_using_directive_yields_external_dependency(processor: CSharpProcessor) -> None:
    deps = processor.extract_dependencies("using System.Collections.Generic;\n", Path("Foo.cs"))

    assert len(deps) == 1
    dep = deps[0]
    assert dep.name == "Generic"
    assert dep.is_external is True
    assert dep.dependency_type == "using"
    assert dep.line_number == 1


def test_using_directives_classify_internal_and_skip_aliases(processor: CSharpProcessor) -> None:
    content = "\n".join(
        [
            "using Contoso.Billing.Invoices;",
            "using static System.Math;",
            "using Json = Newtonsoft.Json;",
            "namespace Contoso.Billing",
            "{",
            "}",
        ]
    )

    deps = processor.extract_dependencies(content, Path("Billing/Service.cs"))

    assert [(d.name, d.is_external, d.dependency_type, d.line_number) for d in deps] == [
        ("Invoices", False, "using", 1),
        ("Contoso.Billing", False, "namespace", 4),
    ]


def test_class_declaration_yields_single_interface(processor: CSharpProcessor) -> None:
    interfaces = processor.extract_interfaces("public class Foo : Bar\n", Path("Foo.cs"))

    assert len(interfaces) == 1
    info = interfaces[0]
    assert info.name == "Foo"
    assert info.interface_type == "class"
    assert info.visibility == "public"


def test_declarations_cover_members_and_doc_comments(processor: CSharpProcessor) -> None:
    content = """
namespace Shop
{
    /// <summary>
    /// Handles orders.
    /// </summary>
    [Serializable]
    public abstract class OrderService
    {
        public OrderService(IRepository repo, ILogger<OrderService> logger) { }

        public string Name { get; set; }

        public async Task<int> CountAsync(string customerId, int limit = 10)
        {
            if (limit > 0) { }
            return await repo.CountAsync(customerId);
        }

        interface IAudit { }
        enum Status { Open, Closed }
    }
}
"""

    interfaces = processor.extract_interfaces(content, Path("OrderService.cs"))
    by_name = {info.name: info for info in interfaces}

    service = next(info for info in interfaces if info.interface_type == "abstract_class")
    assert [info.interface_type for info in interfaces if info.name == "OrderService"] == [
        "abstract_class",
        "constructor",
    ]
    assert service.description == "Handles orders."

    constructor = next(info for info in interfaces if info.interface_type == "constructor")
    assert [(p.name, p.declared_type) for p in constructor.parameters] == [
        ("repo", "IRepository"),
        ("logger", "ILogger<OrderService>"),
    ]

    assert by_name["Name"].interface_type == "property"
    assert by_name["Name"].return_type == "string"

    count = by_name["CountAsync"]
    assert count.interface_type == "async_method"
    assert count.return_type == "Task<int>"
    assert [(p.name, p.is_optional) for p in count.parameters] == [("customerId", False), ("limit", True)]

    assert by_name["IAudit"].interface_type == "interface"
    assert by_name["IAudit"].visibility == "private"
    assert by_name["Status"].interface_type == "enum"
    # Control-flow statements are never read as declarations.
    assert "if" not in by_name
    assert "CountAsync" in by_name and len([i for i in interfaces if i.name == "CountAsync"]) == 1


def test_package_reference_yields_versioned_nuget_dependency(processor: CSharpProcessor) -> None:
    line = '    <PackageReference Include="Newtonsoft.Json" Version="13.0.1" />\n'

    deps = processor.extract_dependencies(line, Path("App.csproj"))

    assert len(deps) == 1
    dep = deps[0]
    assert dep.name == "Newtonsoft.Json"
    assert dep.is_external is True
    assert dep.dependency_type == "nuget_package"
    assert dep.version == "13.0.1"


def test_project_and_framework_references(processor: CSharpProcessor) -> None:
    content = """<Project Sdk="Microsoft.NET.Sdk.Web">
  <ItemGroup>
    <ProjectReference Include="..\\Shop.Core\\Shop.Core.csproj" />
    <FrameworkReference Include="Microsoft.AspNetCore.App" />
  </ItemGroup>
</Project>
"""

    deps = processor.extract_dependencies(content, Path("Shop.Api.csproj"))

    assert [(d.name, d.is_external, d.dependency_type) for d in deps] == [
        ("Shop.Core", False, "project_reference"),
        ("Microsoft.AspNetCore.App", True, "framework_reference"),
    ]
    assert processor.determine_component_type(Path("Shop.Api.csproj"), content) == "csharp_web_project"


def test_solution_projects(processor: CSharpProcessor) -> None:
    content = (
        'Project("{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}") = "Shop.Api", "src\\Shop.Api\\Shop.Api.csproj", "{1}"\n'
        "EndProject\n"
    )

    deps = processor.extract_dependencies(content, Path("Shop.sln"))

    assert [(d.name, d.dependency_type) for d in deps] == [("Shop.Api", "solution_project")]


def test_sqlproj_references(processor: CSharpProcessor) -> None:
    content = """<Project>
  <ItemGroup>
    <Build Include="dbo\\Tables\\Customers.sql" />
    <PostDeploy Include="Seed.sql" />
    <ProjectReference Include="..\\Shared\\Shared.sqlproj" />
    <ArtifactReference Include="$(DacPacRootPath)\\master.dacpac" />
  </ItemGroup>
</Project>
"""

    deps = processor.extract_dependencies(content, Path("Db.sqlproj"))

    assert [(d.name, d.dependency_type, d.is_external) for d in deps] == [
        ("Customers", "Tables", False),
        ("Seed", "sql_object", False),
        ("Shared", "database_reference", False),
        ("master", "dacpac_reference", True),
    ]


def test_sql_table_and_procedure_references(processor: CSharpProcessor) -> None:
    content = "\n".join(
        [
            "-- SELECT * FROM Ignored",
            "SELECT c.Id FROM dbo.Customers c",
            "  JOIN dbo.Orders o ON o.CustomerId = c.Id",
            "UPDATE STATISTICS dbo.Customers",
            "EXEC dbo.RecalculateTotals",
            "EXEC @dynamicSql",
        ]
    )

    deps = processor.extract_dependencies(content, Path("report.sql"))

    assert [(d.name, d.dependency_type, d.line_number) for d in deps] == [
        ("dbo.Customers", "table_reference", 2),
        ("dbo.Orders", "table_reference", 3),
        ("dbo.RecalculateTotals", "stored_procedure_call", 5),
    ]


@pytest.mark.parametrize(
    ("file_name", "content", "expected"),
    [
        ("Tables/Customers.sql", "CREATE TABLE dbo.Customers (Id INT)", "sql_table_definition"),
        ("Procs/Get.sql", "CREATE PROCEDURE dbo.Get AS SELECT 1", "sql_stored_procedure"),
        ("Db.sqlproj", "<Project />", "sql_database_project"),
        ("Tool.csproj", "<OutputType>Exe</OutputType>", "csharp_console_project"),
        ("OrderServiceTests.cs", "public class OrderServiceTests {}", "csharp_test"),
        ("IRepository.cs", "public interface IRepository {}", "csharp_interface"),
        ("Empty.cs", "// nothing here", "csharp_file"),
    ],
)
def test_component_types(processor: CSharpProcessor, file_name: str, content: str, expected: str) -> None:
    assert processor.determine_component_type(Path(file_name), content) == expected


@pytest.mark.parametrize(
    "content",
    [
        "using ;",
        "public class",
        "public void Broken(int",
        "<PackageReference Include=\"Unterminated",
        "EXEC",
        "\x00\x01 garbage {{{",
        "",
    ],
)
@pytest.mark.parametrize("file_name", ["Broken.cs", "Broken.csproj", "Broken.sln", "Broken.sqlproj", "broken.sql"])
def test_malformed_input_never_raises(processor: CSharpProcessor, content: str, file_name: str) -> None:
    path = Path(file_name)

    assert isinstance(processor.extract_dependencies(content, path), list)
    assert isinstance(processor.extract_interfaces(content, path), list)


def test_parse_parameters_skips_modifiers_and_keeps_generics() -> None:
    params = parse_parameters("this IEnumerable<T> source, ref int count, Dictionary<string, int> map = null")

    assert [(p.name, p.declared_type, p.is_optional) for p in params] == [
        ("source", "IEnumerable<T>", False),
        ("count", "int", False),
        ("map", "Dictionary<string, int>", True),
    ]


def test_important_lines(processor: CSharpProcessor) -> None:
    assert processor.is_important_line("    public class Foo")
    assert processor.is_important_line("[HttpGet]")
    assert processor.is_important_line("// TODO: remove")
    assert not processor.is_important_line("    var x = 1;")
