"""日志初始化

structlog 挂在标准库 logging 之上，litellm / httpx 的日志与 llmgate 自身事件走同一个 handler。
LLMGATE_LOG_FORMAT=json 输出 JSON 行，否则输出 console 格式；日志一律写 stderr。
"""

import logging
import os
import sys
from typing import Any

import structlog

# 第三方 logger 默认级别：INFO 过于嘈杂
QUIET_LOGGERS = {
    "LiteLLM": logging.WARNING,
    "LiteLLM Router": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

# 这些字段出现在事件中时值被遮蔽
SECRET_FIELDS = frozenset({"api_key", "authorization", "password", "token"})
REDACTED = "***"

# 标记 llmgate 安装的 handler，重复初始化时只替换它
_HANDLER_MARK = "_llmgate_handler"


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor：遮蔽密钥类字段"""
    for key in event_dict.keys() & SECRET_FIELDS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化日志

    Args:
        log_format: "json" 或 "console"，None 时读取 LLMGATE_LOG_FORMAT
        log_level: 级别名，None 时读取 LLMGATE_LOG_LEVEL；无法识别时为 INFO
    """
    log_format = log_format or os.environ.get("LLMGATE_LOG_FORMAT", "console")
    level = _resolve_level(log_level or os.environ.get("LLMGATE_LOG_LEVEL", "INFO"))
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
            foreign_pre_chain=pre_chain,
        )
    )
    setattr(handler, _HANDLER_MARK, True)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, level))
