"""依存マニフェストのスクレイピングのユニットテスト。"""

import pytest

from plumb.heuristics.manifest import (
    normalize_name,
    parse_requirement,
    scrape_manifest,
    scrape_pyproject,
    scrape_requirements,
)


class TestParseRequirement:
    @pytest.mark.parametrize(
        ("requirement", "expected"),
        [
            ("httpx>=0.27", ("httpx", ">=0.27")),
            ("Pydantic_Settings >= 2.0, <3", ("pydantic-settings", ">= 2.0, <3")),
            ("uvicorn[standard]>=0.30", ("uvicorn", ">=0.30")),
            ("tomli; python_version < '3.11'", ("tomli", "")),
            ("rich", ("rich", "")),
        ],
    )
    def test_requirement(self, requirement: str, expected: tuple[str, str]) -> None:
        assert parse_requirement(requirement) == expected

    def test_normalize_name(self) -> None:
        assert normalize_name("Ruamel.YAML") == "ruamel-yaml"


class TestScrapePyproject:
    def test_multiline_arrays_and_optional_groups(self) -> None:
        lines = """\
[project]
name = "demo"
dependencies = [
    "click>=8",  # cli
    'rich',
]
classifiers = ["Programming Language :: Python"]

[project.optional-dependencies]
test = ["pytest>=8.0", "pytest-asyncio"]

[tool.ruff]
line-length = 120
""".splitlines()

        assert scrape_pyproject(lines) == {
            "click": ">=8",
            "rich": "",
            "pytest": ">=8.0",
            "pytest-asyncio": "",
        }

    def test_single_line_array(self) -> None:
        lines = ['[project]', 'dependencies = ["pyyaml>=6", "starlette"]']

        assert scrape_pyproject(lines) == {"pyyaml": ">=6", "starlette": ""}

    def test_poetry_tables(self) -> None:
        lines = """\
[tool.poetry.dependencies]
python = "^3.11"
requests = "^2.31"
fastapi = { version = "0.110.0", extras = ["all"] }

[tool.poetry.group.dev.dependencies]
black = "*"
""".splitlines()

        assert scrape_pyproject(lines) == {"requests": "^2.31", "fastapi": "0.110.0", "black": "*"}

    def test_garbage_is_ignored(self) -> None:
        assert scrape_pyproject(["this is not toml", "[[[", "= = ="]) == {}


class TestScrapeRequirements:
    def test_skips_options_and_comments(self) -> None:
        lines = ["# pinned", "-r base.txt", "--index-url https://example.invalid", "", "rich==13.7.1", "httpx"]

        assert scrape_requirements(lines) == {"rich": "==13.7.1", "httpx": ""}

    def test_dispatch_by_file_name(self) -> None:
        assert scrape_manifest("requirements.txt", ["click"]) == {"click": ""}
        assert scrape_manifest("pyproject.toml", ["click"]) == {}
