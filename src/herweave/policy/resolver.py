"""Policy resolver: loads and validates the ledger's economy parameters.

Parameters live in config/ledger_params.json:
- help_type_costs: credit cost to post a request, per help-type code
- match_reward: credit paid to a helper when they accept a request
- initial_balance: credit granted to every new account
- initial_trust_score: trust score before any review lands
- trust_rating_multiplier: scales a 1-5 average onto the 0-100 trust scale

The resolver is immutable after construction. Malformed configuration
fails at load time, never at first use.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from herweave.models.request import HelpType
from herweave.models.review import MAX_RATING

PARAMS_FILENAME = "ledger_params.json"

_DEFAULT_PARAMS: dict[str, Any] = {
    "help_type_costs": {"0": 2, "1": 5, "2": 3},
    "match_reward": 1,
    "initial_balance": 10,
    "initial_trust_score": 50,
    "trust_rating_multiplier": 20,
}


def _require_non_negative_int(params: dict[str, Any], key: str) -> int:
    value = params.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{key} must be non-negative, got {value}")
    return value


class PolicyResolver:
    """Resolves ledger policy from a parameters mapping.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        resolver.help_type_costs()   # {HelpType.AIRPORT_PICKUP: 2, ...}
        resolver.match_reward()      # 1
    """

    def __init__(self, params: dict[str, Any]) -> None:
        self._costs = self._parse_costs(params.get("help_type_costs"))
        self._match_reward = _require_non_negative_int(params, "match_reward")
        self._initial_balance = _require_non_negative_int(params, "initial_balance")
        self._initial_trust = _require_non_negative_int(params, "initial_trust_score")
        self._multiplier = _require_non_negative_int(params, "trust_rating_multiplier")
        if self._initial_trust > 100:
            raise ValueError(
                f"initial_trust_score must be in [0, 100], got {self._initial_trust}"
            )
        if self._multiplier * MAX_RATING > 100:
            raise ValueError(
                f"trust_rating_multiplier {self._multiplier} would push trust "
                f"above 100 for a {MAX_RATING}-star average"
            )

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load policy from <config_dir>/ledger_params.json."""
        path = Path(config_dir) / PARAMS_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            return cls(json.load(handle))

    @classmethod
    def default(cls) -> PolicyResolver:
        """Policy with the built-in economy parameters."""
        return cls(_DEFAULT_PARAMS)

    @staticmethod
    def _parse_costs(raw: Any) -> dict[HelpType, int]:
        if not isinstance(raw, dict):
            raise ValueError("help_type_costs must be a mapping of code -> cost")
        costs: dict[HelpType, int] = {}
        for code, cost in raw.items():
            try:
                help_type = HelpType(int(code))
            except ValueError:
                raise ValueError(f"Unknown help type code in config: {code!r}") from None
            if isinstance(cost, bool) or not isinstance(cost, int) or cost < 0:
                raise ValueError(
                    f"Cost for help type {code} must be a non-negative integer, got {cost!r}"
                )
            costs[help_type] = cost
        missing = [h.value for h in HelpType if h not in costs]
        if missing:
            raise ValueError(f"help_type_costs missing codes: {missing}")
        return costs

    def help_type_costs(self) -> dict[HelpType, int]:
        return dict(self._costs)

    def match_reward(self) -> int:
        return self._match_reward

    def initial_balance(self) -> int:
        return self._initial_balance

    def initial_trust_score(self) -> int:
        return self._initial_trust

    def trust_rating_multiplier(self) -> int:
        return self._multiplier
