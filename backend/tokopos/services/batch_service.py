# Overview: Per-document loop for batch pushes; one bad document never fails its siblings.

from __future__ import annotations

from typing import Callable, Iterable

from flask import current_app

from ..errors import PosError
from ..extensions import db
from .idempotency_service import RESULT_CREATED, RESULT_DUPLICATE, RESULT_REJECTED, InboundResult


def ingest_batch(docs: Iterable, ingest: Callable[[object], InboundResult], *, event: str) -> tuple[dict, list[dict]]:
    """
    Run `ingest` for every document and collect a summary plus per-item results.

    Business rejections (PosError) are logged at warning level with their
    code; anything else is logged with a traceback and reported as
    INTERNAL_ERROR for that document only.
    """
    summary = {"created": 0, "duplicate": 0, "errors": 0}
    results: list[dict] = []
    for doc in docs:
        try:
            result = ingest(doc)
        except PosError as exc:
            db.session.rollback()
            summary["errors"] += 1
            current_app.logger.warning(
                "%s-error clientDocId=%s code=%s message=%s", event, doc.client_doc_id, exc.code, exc.message,
            )
            result = InboundResult(doc.client_doc_id, RESULT_REJECTED, error=exc.to_dict())
        except Exception:
            db.session.rollback()
            summary["errors"] += 1
            current_app.logger.exception("%s-error clientDocId=%s", event, doc.client_doc_id)
            result = InboundResult(
                doc.client_doc_id,
                RESULT_REJECTED,
                error={"code": "INTERNAL_ERROR", "message": "Internal server error"},
            )
        else:
            if result.status == RESULT_CREATED:
                summary["created"] += 1
            elif result.status == RESULT_DUPLICATE:
                summary["duplicate"] += 1
        results.append(result.to_dict())
    return summary, results
