from __future__ import annotations

import json

from outbox_harvester.entity.outbox import OutboxEntry


def _reject_constant(name: str) -> None:
    raise ValueError(f"non-standard JSON constant {name}")


def _is_strict_json(payload: str) -> bool:
    try:
        json.loads(payload, parse_constant=_reject_constant)
    except ValueError:
        return False
    return True


def _embed_payload(payload: str) -> str:
    # Валидный JSON вставляется в конверт исходным текстом, остальное строкой.
    if _is_strict_json(payload):
        return payload.strip()
    return json.dumps(payload, ensure_ascii=False)


def build_envelope(entry: OutboxEntry) -> bytes:
    """
    Сообщение для брокера: action, исходный payload и traceparent продюсера.
    """
    action = json.dumps(entry.action, ensure_ascii=False)
    traceparent = json.dumps(entry.trace_context or "", ensure_ascii=False)
    envelope = (
        f'{{"action": {action}, '
        f'"data": {_embed_payload(entry.payload)}, '
        f'"traceparent": {traceparent}}}'
    )
    return envelope.encode("utf-8")
