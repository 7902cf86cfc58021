"""
Tests for Behavior Flow Analysis.

============================================================
PURPOSE
============================================================
- Segmentation coverage and contiguity
- Flow type / complexity classification
- Transition counting and metrics
- Pattern rules and loyalty prediction
- Engine operations against the database

============================================================
"""

import itertools
from datetime import datetime, timedelta

import pytest

from behavior_flow.classifier import (
    calculate_flow_metrics,
    classify_complexity,
    classify_flow_type,
    identify_behavior_pattern,
)
from behavior_flow.config import BehaviorFlowConfig, FlowConfig, get_default_config, load_config
from behavior_flow.engine import BehaviorFlowEngine
from behavior_flow.loyalty import predict_loyalty
from behavior_flow.segmenter import segment_flows, summarize_transitions
from behavior_flow.types import (
    AnalysisWindow,
    BehaviorPatternType,
    EngagementLevel,
    FlowComplexity,
    FlowTransaction,
    FlowType,
    PrivacyTransition,
)
from core.exceptions import NotFoundError, ValidationError
from tests.conftest import NOW


START = datetime(2024, 6, 1, 10, 0)


def make_tx(
    n: int,
    shielded: bool = False,
    entry: bool = False,
    exit: bool = False,
    minutes: int = None,
) -> FlowTransaction:
    return FlowTransaction(
        txid=f"tx{n:03d}",
        timestamp=START + timedelta(minutes=minutes if minutes is not None else n * 10),
        is_shielded=shielded,
        shielded_entry=entry,
        shielded_exit=exit,
    )


def example_sequence(exit_after_minutes: int = 30):
    """T, Z(entry), Z, Z(exit), T."""
    return [
        make_tx(1, minutes=0),
        make_tx(2, shielded=True, entry=True, minutes=10),
        make_tx(3, shielded=True, minutes=20),
        make_tx(4, shielded=True, exit=True, minutes=10 + exit_after_minutes),
        make_tx(5, minutes=20 + exit_after_minutes),
    ]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config() -> BehaviorFlowConfig:
    return get_default_config()


@pytest.fixture
def engine(session, clock):
    return BehaviorFlowEngine(session, clock=clock)


# ============================================================
# SEGMENTATION
# ============================================================

class TestSegmentation:
    """Tests for segment_flows."""

    def test_example_privacy_flow_spans_entry_to_exit(self, config):
        flows = segment_flows(example_sequence(), config.flow)

        privacy_flows = [flow for flow in flows if flow.is_privacy_flow]
        assert len(privacy_flows) == 1
        assert [tx.txid for tx in privacy_flows[0].transactions] == ["tx002", "tx003", "tx004"]
        assert privacy_flows[0].flow_type == FlowType.MIXING

    def test_example_long_hold_is_holding(self, config):
        flows = segment_flows(example_sequence(exit_after_minutes=2 * 1440), config.flow)

        privacy_flow = next(flow for flow in flows if flow.is_privacy_flow)
        assert privacy_flow.flow_type == FlowType.HOLDING

    def test_example_transparent_runs_become_flows(self, config):
        flows = segment_flows(example_sequence(), config.flow)

        assert [flow.flow_id for flow in flows] == ["flow_1", "flow_2", "flow_3"]
        assert flows[0].flow_type == FlowType.SINGLE_TRANSACTION
        assert not flows[0].is_privacy_flow
        assert not flows[2].is_privacy_flow

    def test_example_transitions_count_every_pair(self):
        summary = summarize_transitions(example_sequence())

        assert summary.counts[PrivacyTransition.T_TO_Z] == 1
        assert summary.counts[PrivacyTransition.Z_TO_Z] == 2
        assert summary.counts[PrivacyTransition.Z_TO_T] == 1
        assert summary.counts[PrivacyTransition.T_TO_T] == 0
        assert summary.total_transitions == 4
        assert summary.percentage(PrivacyTransition.Z_TO_Z) == 50.0

    def test_privacy_flow_records_inner_transitions(self, config):
        flows = segment_flows(example_sequence(), config.flow)
        privacy_flow = flows[1]
        assert privacy_flow.transitions == [PrivacyTransition.Z_TO_Z, PrivacyTransition.Z_TO_Z]

    def test_privacy_flow_closes_after_transparent_once_longer_than_one(self, config):
        sequence = [
            make_tx(1, shielded=True),
            make_tx(2),
            make_tx(3),
        ]
        flows = segment_flows(sequence, config.flow)

        assert [tx.txid for tx in flows[0].transactions] == ["tx001", "tx002"]
        assert [tx.txid for tx in flows[1].transactions] == ["tx003"]

    def test_coverage_for_every_short_sequence(self, config):
        """Concatenated flows reproduce the input for all 4-tx shapes."""
        kinds = [
            {"shielded": False},
            {"shielded": True},
            {"shielded": True, "entry": True},
            {"shielded": True, "exit": True},
        ]
        for combo in itertools.product(kinds, repeat=4):
            sequence = [make_tx(i + 1, **kind) for i, kind in enumerate(combo)]
            flows = segment_flows(sequence, config.flow)

            covered = [tx for flow in flows for tx in flow.transactions]
            assert covered == sequence

            # Contiguity: each flow is a slice of the input
            position = 0
            for flow in flows:
                size = flow.transaction_count
                assert sequence[position:position + size] == flow.transactions
                position += size

    def test_empty_sequence(self, config):
        assert segment_flows([], config.flow) == []
        summary = summarize_transitions([])
        assert summary.total_transitions == 0
        assert all(value == 0.0 for value in summary.percentages.values())


# ============================================================
# CLASSIFICATION
# ============================================================

class TestClassification:
    """Tests for flow type and complexity rules."""

    def test_complexity_tiers(self):
        config = FlowConfig()
        assert classify_complexity(2, config) == FlowComplexity.SIMPLE
        assert classify_complexity(5, config) == FlowComplexity.MODERATE
        assert classify_complexity(10, config) == FlowComplexity.COMPLEX
        assert classify_complexity(11, config) == FlowComplexity.ADVANCED

    @pytest.mark.parametrize("kinds,expected", [
        ([{}, {}], FlowType.TRANSPARENT_ONLY),
        ([{"shielded": True, "entry": True}, {"shielded": True}], FlowType.ACCUMULATION),
        ([{"shielded": True}, {"shielded": True, "exit": True}], FlowType.SPENDING),
        ([{"shielded": True}, {"shielded": True}], FlowType.INTERNAL_SHIELDED),
    ])
    def test_flow_types(self, kinds, expected):
        transactions = [make_tx(i + 1, **kind) for i, kind in enumerate(kinds)]
        assert classify_flow_type(transactions, 10, FlowConfig()) == expected

    def test_single_transaction_wins(self):
        transactions = [make_tx(1, shielded=True, entry=True, exit=True)]
        assert classify_flow_type(transactions, 0, FlowConfig()) == FlowType.SINGLE_TRANSACTION


# ============================================================
# METRICS, PATTERN, LOYALTY
# ============================================================

class TestMetricsAndPattern:
    """Tests for metrics, behavior pattern and loyalty."""

    def test_example_metrics_count_privacy_flows_only(self, config):
        sequence = example_sequence()
        flows = segment_flows(sequence, config.flow)
        metrics = calculate_flow_metrics(flows, sequence, config)

        assert len(flows) == 3
        assert metrics.total_flows == 1
        assert metrics.shielded_flow_ratio == 100.0
        assert metrics.flow_type_distribution == {FlowType.MIXING: 1}
        # 3/5 * 40 = 24, 1 type * 10 = 10, 1/1 * 30 = 30
        assert metrics.privacy_efficiency_score == 64

    def test_example_pattern_and_loyalty(self, config):
        sequence = example_sequence()
        flows = segment_flows(sequence, config.flow)
        transitions = summarize_transitions(sequence)
        metrics = calculate_flow_metrics(flows, sequence, config)

        pattern = identify_behavior_pattern(flows, transitions, metrics, config.pattern)
        prediction = predict_loyalty(pattern, metrics, config.loyalty)

        assert pattern.primary_pattern == BehaviorPatternType.SHIELDED_NATIVE
        # 50 + 30 (shielded native) - 5 (single flow)
        assert prediction.loyalty_score == 75
        assert prediction.retention_probability == 90.0
        assert prediction.engagement_level == EngagementLevel.HIGH
        assert "Limited privacy exploration" in prediction.risk_factors

    def test_no_flows_gives_zero_metrics(self, config):
        metrics = calculate_flow_metrics([], [], config)
        assert metrics.total_flows == 0
        assert metrics.privacy_efficiency_score == 0

    def test_shielded_native_pattern(self, config):
        sequence = [make_tx(i, shielded=True) for i in range(1, 4)]
        flows = segment_flows(sequence, config.flow)
        transitions = summarize_transitions(sequence)
        metrics = calculate_flow_metrics(flows, sequence, config)

        pattern = identify_behavior_pattern(flows, transitions, metrics, config.pattern)
        assert pattern.primary_pattern == BehaviorPatternType.SHIELDED_NATIVE
        assert pattern.confidence == 90
        assert "Quick privacy operations" in pattern.characteristics

    def test_transparent_only_pattern_and_loyalty(self, config):
        sequence = [make_tx(i) for i in range(1, 4)]
        flows = segment_flows(sequence, config.flow)
        transitions = summarize_transitions(sequence)
        metrics = calculate_flow_metrics(flows, sequence, config)

        pattern = identify_behavior_pattern(flows, transitions, metrics, config.pattern)
        prediction = predict_loyalty(pattern, metrics, config.loyalty)

        assert len(flows) == 1
        assert metrics.total_flows == 0
        assert pattern.primary_pattern == BehaviorPatternType.TRANSPARENT_ONLY
        # 50 - 10 (transparent), no single-flow penalty without privacy flows
        assert prediction.loyalty_score == 40
        assert prediction.engagement_level == EngagementLevel.LOW
        assert prediction.risk_factors == ["No privacy feature usage"]

    def test_loyalty_is_bounded(self, config):
        sequence = []
        n = 0
        # Eight long shielded holds: native, long duration, many flows
        for hold in range(8):
            n += 1
            sequence.append(make_tx(n, shielded=True, entry=True, minutes=hold * 5000))
            n += 1
            sequence.append(make_tx(n, shielded=True, exit=True, minutes=hold * 5000 + 2000))
        flows = segment_flows(sequence, config.flow)
        transitions = summarize_transitions(sequence)
        metrics = calculate_flow_metrics(flows, sequence, config)
        pattern = identify_behavior_pattern(flows, transitions, metrics, config.pattern)

        prediction = predict_loyalty(pattern, metrics, config.loyalty)
        assert 0 <= prediction.loyalty_score <= 100
        assert prediction.retention_probability <= 100.0
        assert prediction.engagement_level == EngagementLevel.HIGH


# ============================================================
# CONFIG
# ============================================================

class TestConfig:
    """Tests for YAML threshold overrides."""

    def test_missing_path_gives_defaults(self):
        assert load_config(None).to_dict() == get_default_config().to_dict()

    def test_yaml_override(self, tmp_path):
        path = tmp_path / "flows.yaml"
        path.write_text("flow:\n  holding_duration_minutes: 60\n  unknown_key: 1\n")

        config = load_config(path)
        assert config.flow.holding_duration_minutes == 60
        assert config.flow.simple_max_transactions == 2


# ============================================================
# ENGINE
# ============================================================

class TestBehaviorFlowEngine:
    """Tests for engine operations against the database."""

    def test_analysis_of_example_wallet(self, engine, factory):
        project = factory.project()
        wallet = factory.wallet(project)
        base = NOW - timedelta(days=2)
        factory.tx(wallet.id, base)
        factory.tx(wallet.id, base + timedelta(minutes=10), is_shielded=True, entry=True)
        factory.tx(wallet.id, base + timedelta(minutes=20), is_shielded=True)
        factory.tx(wallet.id, base + timedelta(minutes=40), is_shielded=True, exit=True)
        factory.tx(wallet.id, base + timedelta(minutes=50))

        analysis = engine.get_flow_analysis(wallet.id, persist=True)

        assert len(analysis.flows) == 3
        assert analysis.metrics.total_flows == 1
        assert analysis.pattern.primary_pattern == BehaviorPatternType.SHIELDED_NATIVE
        assert analysis.loyalty_prediction.loyalty_score == 75
        stored = engine.get_wallet_behavior_flows(wallet.id)
        assert len(stored) == 1
        assert stored[0]["total_flows"] == 1
        assert stored[0]["pattern"] == analysis.pattern.primary_pattern.value

    def test_empty_window_returns_none(self, engine, factory):
        wallet = factory.wallet(factory.project())
        assert engine.get_flow_analysis(wallet.id) is None

    def test_unknown_wallet(self, engine):
        import uuid
        with pytest.raises(NotFoundError):
            engine.get_flow_analysis(uuid.uuid4())

    def test_inverted_window(self, engine, factory):
        wallet = factory.wallet(factory.project())
        window = AnalysisWindow(start=NOW, end=NOW - timedelta(days=1))
        with pytest.raises(ValidationError):
            engine.get_flow_analysis(wallet.id, window)

    def test_project_analysis_excludes_private_wallets(self, engine, factory):
        project = factory.project()
        public = factory.wallet(project, privacy_mode="public")
        private = factory.wallet(project, privacy_mode="private")
        for wallet in (public, private):
            factory.tx(wallet.id, NOW - timedelta(days=1), is_shielded=True)

        result = engine.analyze_project(project.id, days=30)

        analyzed = {analysis.wallet_id for analysis in result.wallet_analyses}
        assert analyzed == {public.id}
        assert result.insights.total_wallets_analyzed == 1
