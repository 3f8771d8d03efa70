"""Observability endpoints exposing ledger counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from points_ledger.api.dependencies.security import require_role
from points_ledger.models.account import AccountRoleEnum
from points_ledger.observability.ledger import get_ledger_store


router = APIRouter(
    prefix="/observability",
    tags=["Observability"],
    dependencies=[Depends(require_role(AccountRoleEnum.MANAGER))],
)


@router.get("/ledger", summary="Points ledger observability snapshot")
async def get_ledger_snapshot() -> dict[str, object]:
    return get_ledger_store().snapshot().as_dict()


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} counter",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    summary="Prometheus-formatted ledger counters",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_ledger_store().snapshot()
    lines: list[str] = []

    for kind, count in sorted(snapshot.transactions.items()):
        lines.extend(
            _format_metric("points_ledger_transactions_total", "Committed transactions by kind", count, {"kind": kind})
        )
    for kind, points in sorted(snapshot.points.items()):
        lines.extend(
            _format_metric("points_ledger_points_total", "Points credited or moved by kind", points, {"kind": kind})
        )
    for direction, count in sorted(snapshot.quarantine.items()):
        lines.extend(
            _format_metric(
                "points_ledger_quarantine_toggles_total",
                "Purchase quarantine toggles",
                count,
                {"direction": direction},
            )
        )
    for transition, count in sorted(snapshot.redemptions.items()):
        lines.extend(
            _format_metric(
                "points_ledger_redemption_transitions_total",
                "Redemption settlement transitions",
                count,
                {"transition": transition},
            )
        )
    for key, count in sorted(snapshot.rejections.items()):
        operation, _, error = key.partition(":")
        lines.extend(
            _format_metric(
                "points_ledger_rejections_total",
                "Rejected ledger operations",
                count,
                {"operation": operation, "error": error},
            )
        )

    return PlainTextResponse("\n".join(lines) + "\n")
