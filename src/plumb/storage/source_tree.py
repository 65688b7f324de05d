"""ローカルファイルシステム上のソースツリーへの読み取り専用アクセス。"""

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from plumb.models.errors import ConfigurationError

logger = logging.getLogger(__name__)


def is_excluded(rel_path: str, exclude_paths: Sequence[str]) -> bool:
    """相対パスが除外フラグメントに該当するか判定する。

    "/"を含むフラグメントはパス中の部分一致、それ以外はパス要素との完全一致で判定する。
    """
    normalized = rel_path.replace("\\", "/").strip("/")
    parts = normalized.split("/")
    for fragment in exclude_paths:
        fragment = fragment.replace("\\", "/").strip("/")
        if not fragment:
            continue
        if "/" in fragment:
            if fragment in normalized:
                return True
        elif fragment in parts:
            return True
    return False


class SourceTree:
    """プロジェクト配下のソースファイル集合。

    ディレクトリ走査は常にソート順で行い、同じツリーからは同じ順序のファイル一覧を返す。
    ファイルは読み取りのみで、変更は一切行わない。
    """

    def __init__(self, root: Path, exclude_paths: Sequence[str], suffixes: Sequence[str]) -> None:
        resolved = root.expanduser().resolve()
        if not resolved.is_dir():
            raise ConfigurationError(f"Project path does not exist or is not a directory: {root}")
        self._root = resolved
        self._exclude_paths = list(exclude_paths)
        self._suffixes = tuple(suffixes)
        self._files: list[str] | None = None

    @property
    def root(self) -> Path:
        return self._root

    def files(self) -> list[str]:
        """除外ルールを適用したソースファイルの相対パス一覧を返す。"""
        if self._files is not None:
            return self._files

        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root, followlinks=False):
            rel_dir = Path(dirpath).relative_to(self._root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            # 除外ディレクトリは降りる前に刈り込む
            dirnames[:] = sorted(
                d for d in dirnames if not is_excluded(f"{rel_dir}/{d}" if rel_dir else d, self._exclude_paths)
            )
            for name in sorted(filenames):
                if not name.endswith(self._suffixes):
                    continue
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if not is_excluded(rel, self._exclude_paths):
                    found.append(rel)

        self._files = sorted(found)
        return self._files

    def count(self) -> int:
        return len(self.files())

    def resolve(self, file_path: str) -> Path:
        """ツリー内のファイルパスを絶対パスに解決する。"""
        candidate = Path(file_path)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        return candidate.resolve()

    def relative(self, file_path: str) -> str:
        """ツリー配下のパスならルートからの相対パスを返す。それ以外はそのまま返す。"""
        try:
            return Path(file_path).resolve().relative_to(self._root).as_posix()
        except ValueError:
            return file_path

    def read_lines(self, file_path: str) -> list[str]:
        """ファイルを行単位で読み込む。読めないファイルは空リストとして扱う。"""
        try:
            text = self.resolve(file_path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", file_path, e)
            return []
        return text.splitlines()

    def snapshot(self) -> dict[str, list[str]]:
        """全ソースファイルの内容を一度に読み込んだ読み取り専用スナップショットを返す。"""
        return {rel: self.read_lines(rel) for rel in self.files()}
