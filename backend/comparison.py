"""Comparison coordinator: pick a base dorm, pick a target, diff their prices.

Every transition takes the current ComparisonFlow and returns the next one.
Transitions that make no sense for the current phase return the flow
unchanged; they guard against UI states that should not happen and are not
reported to the user.
"""

import logging

from models import ComparisonFlow, ComparisonState, Place
from normalize import build_price_profile

logger = logging.getLogger(__name__)

IDLE = ComparisonFlow()


def begin_selection(flow: ComparisonFlow) -> ComparisonFlow:
    """Enter compare mode before a base dorm is known."""
    if flow.phase != "idle":
        return flow
    return ComparisonFlow(phase="selecting_base")


def start_comparison(flow: ComparisonFlow, base: Place | None) -> ComparisonFlow:
    """Record base and wait for a target. Any previous comparison is dropped."""
    if base is None or not base.id:
        return flow
    return ComparisonFlow(phase="selecting_target", base=base)


def compare_options(flow: ComparisonFlow, visible: list[Place]) -> list[Place]:
    """Dorms that can be picked as target: visible, identified, not the base."""
    base_id = flow.base.id if flow.base is not None else None
    return [d for d in visible if d.id and d.id != base_id]


def pick_target(flow: ComparisonFlow, target_id: str | None, visible: list[Place]) -> ComparisonFlow:
    """Highlight a candidate target without resolving the comparison yet."""
    if flow.phase != "selecting_target":
        return flow
    if target_id is not None and not any(d.id == target_id for d in compare_options(flow, visible)):
        return flow
    return flow.model_copy(update={"pending_target_id": target_id})


def confirm_target(
    flow: ComparisonFlow,
    target_id: str | None,
    visible: list[Place],
) -> ComparisonFlow:
    """Resolve against target_id (or the pending pick when None).

    The target must be visible under the active filters so a hidden dorm can
    never be compared.
    """
    if flow.phase != "selecting_target" or flow.base is None:
        return flow
    target_id = target_id or flow.pending_target_id
    if not target_id or target_id == flow.base.id:
        return flow
    target = next((d for d in visible if d.id == target_id), None)
    if target is None:
        return flow
    result = compare_prices(flow.base, target)
    logger.debug("Compared %s against %s: %s", flow.base.id, target_id, result.diff_mode)
    return ComparisonFlow(phase="resolved", base=flow.base, result=result)


def cancel(flow: ComparisonFlow) -> ComparisonFlow:
    return IDLE


def compare_prices(base: Place, target: Place) -> ComparisonState:
    base_range, target_range = base.price_range, target.price_range
    base_profile = build_price_profile(base_range)
    target_profile = build_price_profile(target_range)
    state = ComparisonState(
        base_id=base.id or "",
        target_id=target.id or "",
        base_range=base_range,
        target_range=target_range,
        base_profile=base_profile,
        target_profile=target_profile,
    )

    if base_profile.kind == "none" or target_profile.kind == "none":
        return state.model_copy(update={"incomplete": True})

    # No currency conversion: a mismatch is reported, not an error.
    if base_range.currency != target_range.currency:
        return state.model_copy(update={"same_currency": False})

    diff_mode = "dual" if "dual" in (base_profile.kind, target_profile.kind) else "single"
    diff_low = None
    if target_profile.low is not None and base_profile.low is not None:
        diff_low = target_profile.low - base_profile.low
    diff_high = None
    if diff_mode == "dual" and target_profile.high is not None and base_profile.high is not None:
        diff_high = target_profile.high - base_profile.high

    if diff_mode == "single":
        incomplete = diff_low is None
    else:
        incomplete = diff_low is None or diff_high is None

    return state.model_copy(update={
        "same_currency": True,
        "incomplete": incomplete,
        "diff_mode": diff_mode,
        "diff_low": diff_low,
        "diff_high": diff_high,
    })


def reconcile(flow: ComparisonFlow, visible: list[Place]) -> ComparisonFlow:
    """Drop whatever the current filter result no longer supports."""
    visible_ids = {d.id for d in visible if d.id}
    if flow.phase == "resolved":
        if flow.result is None or flow.base is None:
            return IDLE
        if flow.base.id not in visible_ids or flow.result.target_id not in visible_ids:
            return IDLE
        return flow
    if flow.phase == "selecting_target":
        if flow.base is None or flow.base.id not in visible_ids:
            return IDLE
        if flow.pending_target_id is not None and flow.pending_target_id not in visible_ids:
            return flow.model_copy(update={"pending_target_id": None})
    return flow
