# qrtrace/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

try:
    # multiprocess 支持（需在进程启动前设置好 PROMETHEUS_MULTIPROC_DIR）
    from prometheus_client import REGISTRY, CollectorRegistry, multiprocess

    _HAVE_MP = True
except ImportError:  # 兼容无 multiprocess 环境
    from prometheus_client import REGISTRY

    _HAVE_MP = False

# 业务指标
SUBMISSIONS = Counter(
    "qrtrace_submissions_total", "Scan batch submissions", ["doc_type", "result"]
)
SUBMISSION_ERRORS = Counter(
    "qrtrace_submission_errors_total", "Failed scan batch submissions", ["code"]
)
COMPLETIONS_CONSUMED = Counter(
    "qrtrace_completions_consumed_total", "Completions linked to a downstream document"
)
PAYLOADS_RENDERED = Counter("qrtrace_payloads_rendered_total", "Scan payloads rendered")
DECODE_FAILURES = Counter("qrtrace_decode_failures_total", "Rejected scan payloads", ["code"])

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程模式下直接导出默认 REGISTRY；
    多进程模式下，临时 CollectorRegistry + MultiProcessCollector 合并各分片。
    """
    if _HAVE_MP and os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
