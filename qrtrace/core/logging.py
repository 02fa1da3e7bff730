# qrtrace/core/logging.py
import logging
import sys

from pythonjsonlogger import jsonlogger

_FMT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def build_formatter(json: bool = False) -> logging.Formatter:
    if json:
        # 字段与文本格式一致，便于日志平台检索
        return jsonlogger.JsonFormatter(_FMT)
    return logging.Formatter(_FMT)


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """
    统一日志：
    - 根 logger 设级别
    - 单一 stdout handler，避免重复输出
    - json=True 时每行一条 JSON（QRT_JSON_LOG）
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(json))
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING
    )
    logging.getLogger("qrtrace").debug("logging configured (level=%s json=%s)", level, json)
