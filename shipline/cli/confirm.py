from __future__ import annotations

import sys

import typer

from shipline.services.publish import ConfirmGate, PublishPlan, accept, decline


def prompt_gate(plan: PublishPlan) -> bool:
    """Ask on the terminal; declines when stdin is not interactive."""
    if not sys.stdin.isatty():
        return decline(plan)
    count = len(plan.destinations)
    return typer.confirm(f"Push {plan.source} to {count} destination(s)?", default=False)


def select_gate(*, yes: bool) -> ConfirmGate:
    if yes:
        return accept
    return prompt_gate


__all__ = ["prompt_gate", "select_gate"]
