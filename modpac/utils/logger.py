"""modpac 日志配置

诊断一律写 stderr，stdout 只留给命令结果（依赖列表、构建摘要等），
这样 `modpac depends x > deps.txt` 不会混入日志。

两种输出:
- 文本: 时间 + 级别 + 线程 + logger 名，并行构建时能看出是哪个 worker
- JSON: 每行一个对象，供 CI 收集
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import TextIO

LEVEL_ENV = "MODPAC_LOG_LEVEL"
JSON_ENV = "MODPAC_LOG_JSON"

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(threadName)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON

        {"timestamp": "...+00:00", "level": "INFO", "logger": "modpac.core.scheduler",
         "thread": "build-worker_0", "message": "...", "where": "scheduler.py:120",
         "exception": "..."}

    exception 只在记录携带异常时出现。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            # 取事件发生时间，而不是格式化时间
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "where": f"{record.filename}:{record.lineno}",
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _handler(json_output: bool, stream: TextIO | None) -> logging.Handler:
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO", json_output: bool = False, stream: TextIO | None = None,
) -> None:
    """替换根日志器的全部 handler，重复调用不会重复输出

    未知的级别名按 INFO 处理。
    """
    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(_handler(json_output, stream))


def setup_logging_from_env(debug: bool = False) -> None:
    """CLI 入口使用：--debug 优先，其次 MODPAC_LOG_LEVEL / MODPAC_LOG_JSON"""
    level = "DEBUG" if debug else os.getenv(LEVEL_ENV, "INFO")
    setup_logging(level, json_output=os.getenv(JSON_ENV, "") == "1")
