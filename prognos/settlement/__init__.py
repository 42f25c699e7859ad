"""Settlement engine for prediction pools.

- Scoring of predictions against an outcome
- Pro-rata reward allocation of the pooled stake
- Pool resolution, reward claims, stake and vote intake
- Background resolution of pools past their deadline
"""

from __future__ import annotations

__all__: list[str] = []
