"""
wflow.utils
===========

小物ユーティリティ。

* **logger** : CLI/スクリプト向けのロガー設定 (`setup_logger`, `resolve_level`)
"""

from __future__ import annotations
import logging

logging.getLogger("wflow.utils").addHandler(logging.NullHandler())

from .logger import resolve_level, setup_logger  # noqa: E402

__all__: list[str] = ["setup_logger", "resolve_level"]
