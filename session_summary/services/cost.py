"""Session cost: the accounting service when available, a static pricing table otherwise."""
from __future__ import annotations

import json
import logging
import shutil
import subprocess
from decimal import Decimal, InvalidOperation
from typing import Callable, Mapping, Optional

from session_summary import config
from session_summary.model_identity import canonical_model_name
from session_summary.models import ModelUsage
from session_summary.observability import start_span

logger = logging.getLogger("session_summary.cost")

_PER_MILLION = Decimal(1_000_000)
_ACCUMULATION_QUANTUM = Decimal("0.0001")
_ZERO_RATES = (Decimal("0"), Decimal("0"))

# USD per million tokens (input, output), keyed by canonical model name.
PRICING: dict[str, tuple[Decimal, Decimal]] = {
    "claude-opus-4-6": (Decimal("15.00"), Decimal("75.00")),
    "claude-sonnet-4-5": (Decimal("3.00"), Decimal("15.00")),
    "claude-haiku-4-5": (Decimal("0.80"), Decimal("4.00")),
}


def pricing_for(model: str) -> tuple[Decimal, Decimal]:
    return PRICING.get(canonical_model_name(model), _ZERO_RATES)


def estimate_from_pricing(models: Mapping[str, ModelUsage]) -> Decimal:
    """Sum input/output token cost over every model; unknown models cost nothing."""
    total = Decimal("0")
    for model, usage in models.items():
        in_rate, out_rate = pricing_for(model)
        model_cost = (Decimal(usage.input) / _PER_MILLION) * in_rate + (
            Decimal(usage.output) / _PER_MILLION
        ) * out_rate
        total += model_cost.quantize(_ACCUMULATION_QUANTUM)
    return total.quantize(_ACCUMULATION_QUANTUM)


def query_accounting_service(
    session_id: str,
    timeout: float | None = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[Decimal]:
    """Ask ``ccusage`` for the session total; None when unavailable or slow."""
    if not session_id or which(config.ACCOUNTING_TOOL) is None:
        return None
    try:
        completed = subprocess.run(
            [config.ACCOUNTING_TOOL, "session", "--id", session_id, "--json", "--offline"],
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else config.ACCOUNTING_TIMEOUT_SECONDS,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Accounting service timed out for session %s", session_id)
        return None
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Accounting service failed: %s", exc)
        return None
    if completed.returncode != 0:
        return None

    try:
        payload = json.loads(completed.stdout or "")
    except json.JSONDecodeError:
        return None
    raw = payload.get("totalCost") if isinstance(payload, dict) else None
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


def calculate_cost(
    session_id: str,
    models: Mapping[str, ModelUsage],
    service: Callable[[str], Optional[Decimal]] = query_accounting_service,
) -> Decimal:
    with start_span("session_summary.cost", {"session.id": session_id}) as span:
        cost = service(session_id)
        source = "service"
        if cost is None:
            cost = estimate_from_pricing(models)
            source = "pricing"
        if span is not None:
            span.set_attribute("cost.source", source)
        return cost
