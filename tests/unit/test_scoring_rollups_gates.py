"""Tests for rollups, Fix-First and gates."""

import pytest

from worker.extraction.signals import EEATFlag, PageSignals
from worker.scoring.criteria import Category, Criterion, Impact, Pillar, Scope, criteria_by_id
from worker.scoring import gates as gates_module
from worker.scoring.gates import apply_gates, evaluate_gates
from worker.scoring.models import CheckResult, CheckStatus, Gate, RollupScore, SiteContext
from worker.scoring.rollups import (
    band,
    fix_first,
    overall_score,
    rollup_by_category,
    rollup_by_pillar,
    status_for,
    weighted_pct,
)


def _criterion(id: str, category: Category, weight: float, impact: Impact = Impact.MEDIUM) -> Criterion:
    return Criterion(
        id=id,
        label=id,
        category=category,
        pillar=Pillar.ANSWER,
        scope=Scope.PAGE,
        weight=weight,
        impact=impact,
    )


def _result(id: str, score: float, status: CheckStatus | None = None) -> CheckResult:
    return CheckResult(criterion_id=id, score=score, status=status or status_for(score))


class TestBand:
    """Tests for band and status_for."""

    def test_custom_thresholds(self) -> None:
        """Test a criterion's own pass threshold is used."""
        criterion = Criterion(
            id="X",
            label="X",
            category=Category.STRUCTURE,
            pillar=Pillar.ENTITIES,
            scope=Scope.PAGE,
            weight=1,
            impact=Impact.LOW,
            pass_threshold=70,
        )

        assert band(70, criterion) == 3
        assert band(69.9, criterion) == 2

    def test_status_for(self) -> None:
        """Test 3 is ok, 2 is warn, below is fail."""
        assert status_for(3) == CheckStatus.OK
        assert status_for(2.5) == CheckStatus.WARN
        assert status_for(1) == CheckStatus.FAIL
        assert status_for(0) == CheckStatus.FAIL

    def test_invalid_criterion_rejected(self) -> None:
        """Test non-positive weights are rejected."""
        with pytest.raises(ValueError):
            _criterion("X", Category.CONTENT, 0)


class TestWeightedRollups:
    """Tests for weighted_pct and category/pillar rollups."""

    def test_weighted_pct(self) -> None:
        """Test the weighted percentage formula."""
        assert weighted_pct([(3, 10), (0, 10)]) == (50, 20)
        assert weighted_pct([(2, 3)]) == (67, 3)
        assert weighted_pct([]) == (0, 0.0)

    def test_rollup_ignores_unscored_results(self) -> None:
        """Test not_applicable and error results carry no weight."""
        criteria = criteria_by_id(
            [
                _criterion("A", Category.CONTENT, 10),
                _criterion("B", Category.CONTENT, 30),
                _criterion("C", Category.CONTENT, 5),
            ]
        )
        results = [
            _result("A", 3),
            _result("B", 0, CheckStatus.NOT_APPLICABLE),
            _result("C", 0, CheckStatus.ERROR),
        ]
        rollups = rollup_by_category(results, criteria)

        assert rollups == [RollupScore("Content & Clarity", 100, 10, 1)]

    def test_empty_groups_are_omitted(self) -> None:
        """Test categories without scored checks are left out."""
        criteria = criteria_by_id([_criterion("A", Category.TECHNICAL, 4)])
        rollups = rollup_by_category([_result("A", 1)], criteria)

        assert [r.name for r in rollups] == ["Technical Foundations"]
        assert rollups[0].score == 33

    def test_pillar_rollup(self) -> None:
        """Test pillars roll up independently of categories."""
        criteria = criteria_by_id(
            [_criterion("A", Category.CONTENT, 10), _criterion("B", Category.AUTHORITY, 10)]
        )
        rollups = rollup_by_pillar([_result("A", 3), _result("B", 0)], criteria)

        assert rollups == [RollupScore("Answer Fitness", 50, 20, 2)]

    def test_overall_weights_categories(self) -> None:
        """Test the overall weights each category by its weight total."""
        categories = [RollupScore("a", 100, 30, 3), RollupScore("b", 0, 10, 1)]

        assert overall_score(categories) == 75
        assert overall_score([]) == 0


class TestFixFirst:
    """Tests for fix_first ordering."""

    def test_orders_by_impact_weight_then_id(self) -> None:
        """Test impact desc, weight desc, id asc."""
        criteria = criteria_by_id(
            [
                _criterion("M10", Category.CONTENT, 10, Impact.MEDIUM),
                _criterion("H5", Category.CONTENT, 5, Impact.HIGH),
                _criterion("H9b", Category.CONTENT, 9, Impact.HIGH),
                _criterion("H9a", Category.CONTENT, 9, Impact.HIGH),
                _criterion("L20", Category.CONTENT, 20, Impact.LOW),
            ]
        )
        results = [_result(id, 1) for id in criteria]

        ordered = [item.criterion_id for item in fix_first(results, criteria, limit=10)]

        assert ordered == ["H9a", "H9b", "H5", "M10", "L20"]

    def test_excludes_passing_and_unscored(self) -> None:
        """Test passing, not_applicable and error results are skipped."""
        criteria = criteria_by_id(
            [
                _criterion("A", Category.CONTENT, 1),
                _criterion("B", Category.CONTENT, 1),
                _criterion("C", Category.CONTENT, 1),
                _criterion("D", Category.CONTENT, 1),
            ]
        )
        results = [
            _result("A", 3),
            _result("B", 0, CheckStatus.NOT_APPLICABLE),
            _result("C", 0, CheckStatus.ERROR),
            _result("D", 2),
        ]

        items = fix_first(results, criteria)

        assert [item.criterion_id for item in items] == ["D"]
        assert items[0].status == CheckStatus.WARN


class RecordingLogger:
    def __init__(self) -> None:
        self.warnings: list[tuple[str, dict]] = []

    def warning(self, event: str, **kw: object) -> None:
        self.warnings.append((event, kw))


class TestGates:
    """Tests for evaluate_gates and apply_gates."""

    def _gates(self, pages: list[PageSignals], site: SiteContext) -> dict[str, Gate]:
        return {gate.id: gate for gate in evaluate_gates(pages, site)}

    def test_no_inputs_trip_nothing(self) -> None:
        """Test gates stay open without evidence."""
        gates = self._gates([], SiteContext())

        assert not any(gate.tripped for gate in gates.values())
        assert set(gates) == {
            "answer_engines_blocked",
            "majority_noindex",
            "render_parity",
            "structured_data_broken",
        }

    def test_answer_engines_blocked(self) -> None:
        """Test the gate trips when most primary answer engines are blocked."""
        site = SiteContext(
            crawler_access={"GPTBot": False, "ClaudeBot": False, "PerplexityBot": True, "Bingbot": True}
        )
        gate = self._gates([], site)["answer_engines_blocked"]

        assert gate.tripped
        assert gate.ceiling == 35
        assert "ClaudeBot" in gate.reason

    def test_half_blocked_does_not_trip(self) -> None:
        """Test exactly half blocked is not a majority."""
        site = SiteContext(crawler_access={"GPTBot": False, "ClaudeBot": True})

        assert not self._gates([], site)["answer_engines_blocked"].tripped

    def test_other_agents_counted_without_answer_engine_entries(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test robots.txt naming no answer engine falls back to the agents it names."""
        logger = RecordingLogger()
        monkeypatch.setattr(gates_module, "logger", logger)
        site = SiteContext(crawler_access={"Bingbot": False, "Applebot": False, "Slurp": True})

        gate = self._gates([], site)["answer_engines_blocked"]

        assert gate.tripped
        assert "Applebot" in gate.reason
        assert logger.warnings == [
            ("crawler_access_no_answer_engine_entries", {"agents": ["Applebot", "Bingbot", "Slurp"]})
        ]

    def test_answer_engine_entries_do_not_log_fallback(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the fallback warning is only logged when no answer engine is named."""
        logger = RecordingLogger()
        monkeypatch.setattr(gates_module, "logger", logger)
        site = SiteContext(crawler_access={"GPTBot": True, "Bingbot": False})

        assert not self._gates([], site)["answer_engines_blocked"].tripped
        assert logger.warnings == []

    def test_majority_noindex(self) -> None:
        """Test most pages noindex trips the gate."""
        noindex = frozenset({EEATFlag.ROBOTS_NOINDEX})
        pages = [
            PageSignals(url="https://example.com/a", flags=noindex),
            PageSignals(url="https://example.com/b", flags=noindex),
            PageSignals(url="https://example.com/c"),
        ]

        assert self._gates(pages, SiteContext())["majority_noindex"].tripped

    def test_render_parity(self) -> None:
        """Test parity below 70 trips the gate."""
        assert self._gates([], SiteContext(render_parity=69))["render_parity"].tripped
        assert not self._gates([], SiteContext(render_parity=70))["render_parity"].tripped

    def test_structured_data_broken(self) -> None:
        """Test more than half the JSON-LD blocks failing trips the gate."""
        pages = [
            PageSignals(url="https://example.com/a", jsonld_blocks=2, jsonld_errors=2),
            PageSignals(url="https://example.com/b", jsonld_blocks=1, jsonld_errors=0),
        ]
        gate = self._gates(pages, SiteContext())["structured_data_broken"]

        assert gate.tripped
        assert gate.ceiling == 70

    def test_apply_gates_uses_lowest_ceiling(self) -> None:
        """Test the lowest tripped ceiling wins and never raises the score."""
        gates = [
            Gate(id="a", label="a", tripped=True, ceiling=55),
            Gate(id="b", label="b", tripped=True, ceiling=35),
            Gate(id="c", label="c", tripped=False, ceiling=10),
        ]

        assert apply_gates(90, gates) == 35
        assert apply_gates(20, gates) == 20
        assert apply_gates(90, []) == 90
