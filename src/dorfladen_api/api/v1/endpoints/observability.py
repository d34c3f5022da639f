"""Observability endpoints for ledger telemetry and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from dorfladen_api.api.dependencies.security import require_staff_api_key
from dorfladen_api.observability.ledger import get_ledger_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/ledger",
    dependencies=[Depends(require_staff_api_key)],
    summary="Ledger observability snapshot",
)
async def get_ledger_snapshot() -> dict[str, object]:
    """Accepted operations, rejections by error code and point volumes."""
    return get_ledger_store().snapshot().as_dict()


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} gauge",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    dependencies=[Depends(require_staff_api_key)],
    summary="Prometheus-formatted observability metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_ledger_store().snapshot()

    lines: list[str] = []
    for operation, count in sorted(snapshot.operations.items()):
        lines.extend(
            _format_metric(
                "dorfladen_ledger_operations_total",
                "Accepted ledger operations",
                count,
                {"operation": operation},
            )
        )
    for operation, codes in sorted(snapshot.rejections.items()):
        for code, count in sorted(codes.items()):
            lines.extend(
                _format_metric(
                    "dorfladen_ledger_rejections_total",
                    "Rejected ledger operations",
                    count,
                    {"operation": operation, "code": code},
                )
            )
    lines.extend(
        _format_metric("dorfladen_points_awarded_total", "Points credited", snapshot.points.get("awarded", 0))
    )
    lines.extend(
        _format_metric("dorfladen_points_redeemed_total", "Points spent on rewards", snapshot.points.get("redeemed", 0))
    )
    for outcome, count in sorted(snapshot.badge_dispatch.items()):
        lines.extend(
            _format_metric(
                "dorfladen_badge_evaluations_total",
                "Badge evaluation dispatch outcomes",
                count,
                {"outcome": outcome},
            )
        )

    return PlainTextResponse("\n".join(lines) + "\n")
