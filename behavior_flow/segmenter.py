"""
Behavior Flow - Segmenter.

============================================================
PURPOSE
============================================================
Splits a wallet's ordered transactions into flows.

============================================================
ALGORITHM
============================================================
Walk the sequence with at most one open flow:

- Shielded tx, nothing open: open a PRIVACY flow
- Privacy flow open: append; close after a pool exit, or after
  a transparent tx once the flow holds more than one tx
- Transparent tx, nothing open: open a TRANSPARENT RUN
- Transparent run open: append transparent txs; a shielded tx
  closes the run first and then opens a privacy flow
- End of sequence closes whatever is open

Coverage: concatenating the flows' transactions reproduces the
input exactly, with no gaps and no overlaps.

============================================================
"""

from typing import Dict, List, Optional, Sequence

from core.numeric import percentage, round_half_up

from .classifier import classify_complexity, classify_flow_type
from .config import FlowConfig
from .types import Flow, FlowTransaction, PrivacyTransition, TransitionSummary


class _OpenFlow:
    """Flow under construction."""

    def __init__(self, is_privacy_flow: bool):
        self.is_privacy_flow = is_privacy_flow
        self.transactions: List[FlowTransaction] = []
        self.transitions: List[PrivacyTransition] = []

    def append(self, tx: FlowTransaction) -> None:
        if self.transactions:
            previous = self.transactions[-1]
            self.transitions.append(PrivacyTransition.between(previous.is_shielded, tx.is_shielded))
        self.transactions.append(tx)

    def should_close_after(self, tx: FlowTransaction) -> bool:
        if not self.is_privacy_flow:
            return False
        return tx.shielded_exit or (not tx.is_shielded and len(self.transactions) > 1)

    def close(self, flow_number: int, config: FlowConfig) -> Flow:
        start_time = self.transactions[0].timestamp
        end_time = self.transactions[-1].timestamp
        duration_minutes = round_half_up((end_time - start_time).total_seconds() / 60)

        return Flow(
            flow_id=f"flow_{flow_number}",
            transactions=list(self.transactions),
            transitions=list(self.transitions),
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            flow_type=classify_flow_type(self.transactions, duration_minutes, config),
            complexity=classify_complexity(len(self.transactions), config),
            is_privacy_flow=self.is_privacy_flow,
        )


def segment_flows(
    transactions: Sequence[FlowTransaction],
    config: FlowConfig,
) -> List[Flow]:
    """
    Segment an ascending transaction sequence into flows.

    Args:
        transactions: Transactions ordered by timestamp, then txid
        config: Flow thresholds

    Returns:
        Flows in sequence order (empty for an empty sequence)
    """
    flows: List[Flow] = []
    current: Optional[_OpenFlow] = None

    for tx in transactions:
        if current is not None and not current.is_privacy_flow and tx.is_shielded:
            flows.append(current.close(len(flows) + 1, config))
            current = None

        if current is None:
            current = _OpenFlow(is_privacy_flow=tx.is_shielded)

        current.append(tx)

        if current.should_close_after(tx):
            flows.append(current.close(len(flows) + 1, config))
            current = None

    if current is not None:
        flows.append(current.close(len(flows) + 1, config))

    return flows


def summarize_transitions(transactions: Sequence[FlowTransaction]) -> TransitionSummary:
    """Count every consecutive pair of the sequence by privacy transition."""
    counts: Dict[PrivacyTransition, int] = {transition: 0 for transition in PrivacyTransition}

    for previous, current in zip(transactions, transactions[1:]):
        counts[PrivacyTransition.between(previous.is_shielded, current.is_shielded)] += 1

    total = sum(counts.values())
    return TransitionSummary(
        counts=counts,
        percentages={transition: percentage(count, total) for transition, count in counts.items()},
        total_transitions=total,
    )
