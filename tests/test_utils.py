import json

import pytest

from utils.utils import (
    PerformanceMonitor,
    create_performance_report,
    create_results_summary,
    format_duration,
    save_results,
)
from zk.poseidon import SNARK_SCALAR_FIELD


class TestPerformanceMonitor:

    def test_records_operations(self):
        monitor = PerformanceMonitor()
        for _ in range(3):
            with monitor.start_operation("prove_vote"):
                pass

        summary = monitor.get_summary()
        assert summary['total_operations'] == 3
        op = summary['operations']['prove_vote']
        assert op['count'] == 3
        assert op['failures'] == 0
        assert op['min_duration'] <= op['avg_duration'] <= op['max_duration']

    def test_failures_recorded_and_propagated(self):
        monitor = PerformanceMonitor()
        with pytest.raises(RuntimeError):
            with monitor.start_operation("submit_vote"):
                raise RuntimeError("boom")

        metric = monitor.metrics[0]
        assert not metric.succeeded
        assert metric.additional_data['error'] == "RuntimeError"
        assert monitor.get_summary()['operations']['submit_vote']['failures'] == 1

    def test_empty_summary(self):
        summary = PerformanceMonitor().get_summary()
        assert summary == {'total_operations': 0, 'total_duration': 0.0, 'operations': {}}

    def test_report(self):
        monitor = PerformanceMonitor()
        with monitor.start_operation("register_member"):
            pass
        report = create_performance_report(monitor)
        assert "REGISTER_MEMBER" in report
        assert "Executions: 1 (0 failed)" in report

    def test_save_metrics(self, tmp_path):
        monitor = PerformanceMonitor()
        with monitor.start_operation("op"):
            pass
        monitor.save_metrics(tmp_path / "metrics.json")
        data = json.loads((tmp_path / "metrics.json").read_text())
        assert data['summary']['total_operations'] == 1


class TestResults:

    def test_save_results_writes_json_and_summary(self, tmp_path):
        results = {
            'proposals': [{'id': 1, 'title': 'Audit', 'yes_count': 3, 'no_count': 1}],
            'rejections': [{'scenario': 'replayed proof', 'code': 'DoubleVote'}],
            'root': SNARK_SCALAR_FIELD - 1,
        }
        path = tmp_path / "out" / "report.json"
        save_results(results, path)

        data = json.loads(path.read_text())
        assert data['data']['root'] == str(SNARK_SCALAR_FIELD - 1)
        assert data['data']['proposals'][0]['yes_count'] == 3

        summary = (tmp_path / "out" / "report_summary.txt").read_text()
        assert "#1 Audit: 3 yes / 1 no (75.0% yes)" in summary
        assert "replayed proof: DoubleVote" in summary

    def test_summary_without_votes(self):
        summary = create_results_summary({
            'proposals': [{'id': 2, 'title': 'Idle', 'yes_count': 0, 'no_count': 0}]})
        assert "0 yes / 0 no (0.0% yes)" in summary


@pytest.mark.parametrize("seconds,expected", [
    (0.0125, "12.5ms"),
    (2.5, "2.50s"),
    (125, "2m 5.0s"),
    (3725, "1h 2m 5.0s"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
