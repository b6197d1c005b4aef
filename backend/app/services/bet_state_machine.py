"""
backend/app/services/bet_state_machine.py

Purpose:
    Pure lifecycle decision for a parlay bet: pending -> won | lost.
    ``evaluate`` takes the stored bet and the current state of every match it
    references and returns the next state without touching storage. The
    settlement service persists the result and performs the payout.

Dependencies:
    - app.models.bet
    - app.models.match
    - app.services.selection_evaluator
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from app.models.bet import BetStatus, SelectionResult
from app.models.match import MatchStatus
from app.services.selection_evaluator import evaluate_selection

MATCH_MISSING = "match_missing"

TERMINAL_STATUSES = {BetStatus.won.value, BetStatus.lost.value}


@dataclass
class BetEvaluation:
    selections: list[dict]
    status: BetStatus
    pay_out: bool = False
    unsupported: list[dict] = field(default_factory=list)
    changed: bool = False           # selection results or status differ from storage


def decide_status(results: list[str]) -> BetStatus:
    """Parlay rule: any lost -> lost, else any pending -> pending, else won."""
    if not results:
        # A ticket without legs can never be won
        return BetStatus.lost
    if any(r == SelectionResult.lost.value for r in results):
        return BetStatus.lost
    if any(r == SelectionResult.pending.value for r in results):
        return BetStatus.pending
    return BetStatus.won


def _resolve_leg(sel: dict, match: Optional[dict]) -> tuple[dict, bool]:
    """Return the updated leg and whether it took the fail-closed market path."""
    leg = dict(sel)
    if match is None:
        leg["result"] = SelectionResult.lost.value
        leg["reason"] = MATCH_MISSING
        return leg, False

    if match.get("status") != MatchStatus.finished.value:
        leg["result"] = SelectionResult.pending.value
        leg.pop("reason", None)
        return leg, False

    verdict = evaluate_selection(
        leg.get("market_key", ""),
        leg.get("selection_key", ""),
        int(match.get("home_goals") or 0),
        int(match.get("away_goals") or 0),
    )
    leg["result"] = verdict.result.value
    leg["reason"] = verdict.reason
    return leg, not verdict.supported


def evaluate(bet: dict, matches_by_id: Mapping[str, Optional[dict]]) -> BetEvaluation:
    """Compute the next state of ``bet``.

    ``matches_by_id`` maps each selection's ``match_id`` to its match document,
    or to None when the match no longer exists. The input bet is not mutated.

    A terminal bet (won/lost) is returned as-is: terminal states never revert
    and a paid bet is never paid again.
    """
    current = bet.get("status", BetStatus.pending.value)
    stored = [dict(s) for s in bet.get("selections", [])]
    if current in TERMINAL_STATUSES:
        return BetEvaluation(selections=stored, status=BetStatus(current))

    selections: list[dict] = []
    unsupported: list[dict] = []
    for sel in stored:
        leg, fail_closed = _resolve_leg(sel, matches_by_id.get(str(sel.get("match_id"))))
        selections.append(leg)
        if fail_closed:
            unsupported.append(leg)

    status = decide_status([s["result"] for s in selections])
    pay_out = status == BetStatus.won and not bet.get("is_paid", False)
    changed = status.value != current or selections != stored

    return BetEvaluation(
        selections=selections,
        status=status,
        pay_out=pay_out,
        unsupported=unsupported,
        changed=changed,
    )
