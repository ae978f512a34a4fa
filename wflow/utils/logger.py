# wflow/utils/logger.py
"""
wflow.utils.logger
==================

CLI（``wflow --log-level``）とデモスクリプトが使うロガー初期化。

ライブラリとしての wflow は import 時にハンドラを付けない（各パッケージは NullHandler のみ）。
アプリケーション側で一度 ``setup_logger()`` を呼ぶと、ルートロガーに

- コンソール（stderr）
- 任意でファイル ``<log_dir>/wflow_YYYYmmdd_HHMMSS.log``（UTF-8）

のハンドラが付く。付けたハンドラには印を残すので、何度呼んでも重複せず
レベルだけが更新される。

レベルの決まり方: 引数 ``log_level`` > 環境変数 ``LOG_LEVEL`` > INFO。
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

__all__ = ["setup_logger", "resolve_level"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "INFO"

_MARK = "_wflow_handler"


def resolve_level(log_level: Optional[str] = None) -> int:
    """レベル名を logging の数値へ。未知の名前は INFO。"""
    name = (log_level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _find(root: logging.Logger, kind: str) -> Optional[logging.Handler]:
    return next((h for h in root.handlers if getattr(h, _MARK, None) == kind), None)


def _attach(root: logging.Logger, handler: logging.Handler, kind: str) -> None:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    setattr(handler, _MARK, kind)
    root.addHandler(handler)


def setup_logger(
    log_level: Optional[str] = None,
    to_file: bool = False,
    log_dir: str | Path = "logs",
) -> logging.Logger:
    """
    ルートロガーを設定して返す。

    Parameters
    ----------
    log_level : str | None
        "DEBUG" / "INFO" / "WARNING" / "ERROR" / "CRITICAL"。None なら LOG_LEVEL → INFO。
    to_file : bool
        True ならファイルにも出力する（ファイルハンドラは最初の 1 つだけ）。
    log_dir : str | Path
        ログファイルの置き場。無ければ作る。
    """
    root = logging.getLogger()
    root.setLevel(resolve_level(log_level))

    if _find(root, "console") is None:
        _attach(root, logging.StreamHandler(), "console")

    if to_file and _find(root, "file") is None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / datetime.now().strftime("wflow_%Y%m%d_%H%M%S.log")
        _attach(root, logging.FileHandler(path, encoding="utf-8"), "file")

    return root
