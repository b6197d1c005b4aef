"""
backend/app/services/selection_evaluator.py

Purpose:
    Resolve one parlay leg against a finished match's final score. Supports the
    1X2, GG (both teams to score), OU (over/under) and DC (double chance)
    markets. Unknown market/selection combinations resolve to "lost"
    (fail-closed) and are flagged ``supported=False`` so callers can log and
    count them instead of losing bets silently.

Dependencies:
    - app.models.bet
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from app.models.bet import SelectionResult

UNSUPPORTED_MARKET = "unsupported_market"
DEFAULT_OU_LINE = 2.5


@dataclass(frozen=True)
class SelectionVerdict:
    result: SelectionResult     # never pending: only called for finished matches
    reason: str
    supported: bool = True


def _verdict(won: bool, reason: str) -> SelectionVerdict:
    return SelectionVerdict(
        result=SelectionResult.won if won else SelectionResult.lost,
        reason=reason,
    )


def _unsupported(market_key: str, selection_key: str) -> SelectionVerdict:
    return SelectionVerdict(
        result=SelectionResult.lost,
        reason=f"{UNSUPPORTED_MARKET}: {market_key}/{selection_key}",
        supported=False,
    )


# ---------- Market rules ----------
# Each rule returns None when the selection key is not valid for its market.

def _match_winner(key: str, home: int, away: int) -> Optional[SelectionVerdict]:
    pick = key.lower()
    score = f"score={home}-{away}"
    if pick == "home":
        return _verdict(home > away, score)
    if pick == "away":
        return _verdict(away > home, score)
    if pick == "draw":
        return _verdict(home == away, score)
    return None


def _both_teams_score(key: str, home: int, away: int) -> Optional[SelectionVerdict]:
    pick = key.lower()
    both = home > 0 and away > 0
    score = f"score={home}-{away}"
    if pick in ("yes", "gg"):
        return _verdict(both, score)
    if pick in ("no", "ng"):
        return _verdict(not both, score)
    return None


def parse_ou_line(key: str) -> Optional[float]:
    """Line of an ``over_<line>`` / ``under_<line>`` key; empty line means 2.5."""
    parts = key.split("_")
    if len(parts) < 2:
        return None
    raw = parts[1].strip()
    if not raw:
        return DEFAULT_OU_LINE
    try:
        line = float(raw)
    except ValueError:
        return None
    return line if math.isfinite(line) else None


def _over_under(key: str, home: int, away: int) -> Optional[SelectionVerdict]:
    pick = key.lower()
    if not (pick.startswith("over_") or pick.startswith("under_")):
        return None
    line = parse_ou_line(pick)
    if line is None:
        return None
    total = home + away
    reason = f"total={total}, line={line}"
    if pick.startswith("over_"):
        return _verdict(total > line, reason)
    return _verdict(total < line, reason)


def _double_chance(key: str, home: int, away: int) -> Optional[SelectionVerdict]:
    pick = key.upper()
    score = f"score={home}-{away}"
    if pick == "1X":
        return _verdict(home >= away, score)
    if pick == "12":
        return _verdict(home != away, score)
    if pick == "X2":
        return _verdict(away >= home, score)
    return None


_RULES: dict[str, Callable[[str, int, int], Optional[SelectionVerdict]]] = {
    "1X2": _match_winner,
    "GG": _both_teams_score,
    "GG/NG": _both_teams_score,
    "BTTS": _both_teams_score,
    "OU": _over_under,
    "O/U": _over_under,
    "DC": _double_chance,
}


def _rule_for(market_key: str):
    mk = (market_key or "").strip().upper()
    rule = _RULES.get(mk)
    if rule is None and mk.startswith("O/U"):
        # "O/U 2.5" style labels
        rule = _over_under
    return rule


def evaluate_selection(
    market_key: str, selection_key: str, home_goals: int, away_goals: int,
) -> SelectionVerdict:
    """Resolve one selection against a final score. Always "won" or "lost"."""
    rule = _rule_for(market_key)
    key = (selection_key or "").strip()
    verdict = rule(key, home_goals, away_goals) if rule else None
    if verdict is None:
        return _unsupported(market_key, selection_key)
    return verdict


def is_supported(market_key: str, selection_key: str) -> bool:
    """True when the market/selection pair has a settlement rule."""
    return evaluate_selection(market_key, selection_key, 0, 0).supported
