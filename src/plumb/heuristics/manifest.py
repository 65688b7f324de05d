"""依存マニフェストの行指向スクレイピング。

TOMLパーサーは使わず、セクション見出しと行の形だけを見る。
多少の書式の揺れ (引用符の種類、末尾カンマ、コメント、複数行配列) は許容し、
解釈できない行は黙って読み飛ばす。
"""

import re

_SECTION_RE = re.compile(r"^\s*\[\[?\s*(?P<name>[^\]]+?)\s*\]\]?\s*(?:#.*)?$")
_ARRAY_START_RE = re.compile(r"^\s*(?P<key>[\w.\-\"']+)\s*=\s*\[(?P<rest>.*)$")
_QUOTED_RE = re.compile(r"\"([^\"]+)\"|'([^']+)'")
_KEY_VALUE_RE = re.compile(r"^\s*[\"']?(?P<name>[A-Za-z0-9][\w.\-]*)[\"']?\s*=\s*(?P<value>.+?)\s*(?:#.*)?$")
_INLINE_VERSION_RE = re.compile(r"version\s*=\s*[\"'](?P<version>[^\"']*)[\"']")
_REQUIREMENT_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._\-]*)\s*(?:\[[^\]]*\])?\s*(?P<constraint>[^;#]*)")

_PEP621_ARRAY_SECTIONS = ("project", "project.optional-dependencies", "dependency-groups")
_SKIPPED_POETRY_KEYS = frozenset({"python"})


def normalize_name(name: str) -> str:
    """パッケージ名を正規化する (小文字化し、区切り文字をハイフンに統一)。"""
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_requirement(requirement: str) -> tuple[str, str] | None:
    """``name[extra]>=1.0; marker`` 形式の文字列を (名前, 制約) に分解する。"""
    match = _REQUIREMENT_RE.match(requirement)
    if match is None:
        return None
    return normalize_name(match.group("name")), match.group("constraint").strip()


def _is_dependency_array(section: str, key: str) -> bool:
    key = key.strip("\"'")
    if section == "project":
        return key == "dependencies"
    return section in _PEP621_ARRAY_SECTIONS[1:]


def _is_poetry_table(section: str) -> bool:
    return section.startswith("tool.poetry") and section.endswith("dependencies")


def scrape_pyproject(lines: list[str]) -> dict[str, str]:
    """pyproject.tomlから依存パッケージ名と制約を抽出する。"""
    dependencies: dict[str, str] = {}
    section = ""
    in_array = False

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if in_array:
            _collect_quoted(stripped, dependencies)
            if "]" in stripped.split("#", 1)[0]:
                in_array = False
            continue

        header = _SECTION_RE.match(stripped)
        if header:
            section = header.group("name").strip()
            continue

        array = _ARRAY_START_RE.match(stripped)
        if array and _is_dependency_array(section, array.group("key")):
            rest = array.group("rest")
            _collect_quoted(rest, dependencies)
            in_array = "]" not in rest.split("#", 1)[0]
            continue

        if _is_poetry_table(section):
            pair = _KEY_VALUE_RE.match(stripped)
            if pair and pair.group("name").lower() not in _SKIPPED_POETRY_KEYS:
                dependencies[normalize_name(pair.group("name"))] = _poetry_constraint(pair.group("value"))

    return dependencies


def _collect_quoted(text: str, dependencies: dict[str, str]) -> None:
    for match in _QUOTED_RE.finditer(text.split("#", 1)[0]):
        parsed = parse_requirement(match.group(1) or match.group(2))
        if parsed:
            dependencies[parsed[0]] = parsed[1]


def _poetry_constraint(value: str) -> str:
    value = value.strip()
    if value.startswith("{"):
        inline = _INLINE_VERSION_RE.search(value)
        return inline.group("version") if inline else ""
    return value.strip("\"'")


def scrape_requirements(lines: list[str]) -> dict[str, str]:
    """requirements.txt形式の行から依存パッケージ名と制約を抽出する。"""
    dependencies: dict[str, str] = {}
    for line in lines:
        stripped = line.strip()
        # オプション行 (-r, -e, --index-url など) とコメントは対象外
        if not stripped or stripped.startswith(("#", "-")):
            continue
        parsed = parse_requirement(stripped)
        if parsed:
            dependencies[parsed[0]] = parsed[1]
    return dependencies


def scrape_manifest(file_name: str, lines: list[str]) -> dict[str, str]:
    """ファイル名に応じたスクレイパーで依存を抽出する。"""
    if file_name.endswith(".toml"):
        return scrape_pyproject(lines)
    return scrape_requirements(lines)
