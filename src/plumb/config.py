"""Plumbサーバーの設定管理。"""

import logging
import shutil
import subprocess
import sys
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent

logger = logging.getLogger(__name__)


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "PLUMB_"}

    config_dir: Path = _REPO_ROOT / "config"
    default_project_path: Path = Path(".")

    # 外部アナライザー (1行1JSONで診断を出力するもの)
    analyzer_command: str = "ruff"
    analyzer_args: list[str] = ["check", "--output-format", "json-lines", "--no-cache"]
    analyzer_exclude_flag: str = "--extend-exclude"
    # severityを出力しないアナライザー向けのルールプレフィックス → severity 対応表
    rule_severity_prefixes: dict[str, str] = {"E9": "error", "F63": "error", "F7": "error", "F82": "error"}

    # プロジェクト構成
    manifest_names: list[str] = ["pyproject.toml"]
    source_suffixes: list[str] = [".py"]
    default_excludes: list[str] = [
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        ".tox",
        ".mypy_cache",
        ".ruff_cache",
        ".pytest_cache",
        "build",
        "dist",
        "node_modules",
    ]

    # ヒューリスティクス
    max_suggestions: int = 5
    similar_issue_limit: int = 5
    related_class_window: int = 10
    similarity_threshold: float = 0.7

    # サーバー情報
    server_name: str = "plumb"
    server_version: str = "0.4.0"
    log_level: str = "INFO"

    # HTTPトランスポート
    host: str = "127.0.0.1"
    port: int = 8000
    url_token: str = ""


class AnalyzerInfo(BaseModel):
    """起動時に一度だけ解決するアナライザー情報。"""

    command: str
    path: str | None = None
    version: str | None = None

    @property
    def available(self) -> bool:
        return self.path is not None


def probe_analyzer(config: ServerConfig) -> AnalyzerInfo:
    """アナライザーの所在とバージョンを解決する。

    サーバー起動時に一度だけ呼び出し、結果を各サービスへ明示的に渡す。
    """
    path = shutil.which(config.analyzer_command)
    if path is None:
        logger.warning("Analyzer %r not found on PATH", config.analyzer_command)
        return AnalyzerInfo(command=config.analyzer_command)

    try:
        completed = subprocess.run([path, "--version"], capture_output=True, text=True, check=False)
    except OSError as e:
        logger.warning("Failed to probe analyzer version: %s", e)
        return AnalyzerInfo(command=config.analyzer_command, path=path)

    version = completed.stdout.strip() or None
    logger.info("Using analyzer %s (%s)", path, version or "unknown version")
    return AnalyzerInfo(command=config.analyzer_command, path=path, version=version)


def configure_logging(level: str) -> None:
    """ログ出力をstderrに設定する。stdoutはプロトコルフレーム専用。"""
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
