"""
Utilities for the anonymous voting system:
logging setup, performance monitoring and result persistence
"""

import json
import logging
import platform
import shutil
import time
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import psutil

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


@dataclass
class PerformanceMetrics:
    operation: str
    duration_seconds: float
    cpu_percent: float
    memory_mb: float
    timestamp: float
    succeeded: bool = True
    additional_data: Dict[str, Any] = field(default_factory=dict)


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None,
                  log_dir: Path = Path("logs")) -> logging.Logger:
    """Install a file and a console handler on the root logger"""
    if log_file is None:
        log_file = Path(log_dir) / f"zkvox_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Replace handlers from a previous call instead of stacking them
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.info(f"Logging initialized. Log file: {log_file}")
    return logger

# ============================================================================
# PERFORMANCE MONITORING
# ============================================================================


class PerformanceMonitor:
    """Collects per-operation duration, CPU and RSS samples"""

    def __init__(self):
        self.metrics: List[PerformanceMetrics] = []
        self.process = psutil.Process()

    def start_operation(self, operation_name: str, **additional_data) -> 'OperationContext':
        """Context manager timing one operation"""
        return OperationContext(self, operation_name, additional_data)

    def record_metric(self, metric: PerformanceMetrics):
        self.metrics.append(metric)

    def _sample(self) -> Dict[str, float]:
        try:
            return {
                'cpu_percent': self.process.cpu_percent(),
                'memory_mb': self.process.memory_info().rss / 1024 / 1024,
            }
        except psutil.Error as e:
            logger.debug(f"Performance sampling error: {e}")
            return {'cpu_percent': 0.0, 'memory_mb': 0.0}

    def get_summary(self) -> Dict[str, Any]:
        """Per-operation statistics over everything recorded so far"""
        summary: Dict[str, Any] = {
            'total_operations': len(self.metrics),
            'total_duration': 0.0,
            'operations': {}
        }
        if not self.metrics:
            return summary

        groups: Dict[str, List[PerformanceMetrics]] = {}
        for metric in self.metrics:
            groups.setdefault(metric.operation, []).append(metric)

        for op_name, metrics in groups.items():
            durations = np.array([m.duration_seconds for m in metrics])
            cpu = np.array([m.cpu_percent for m in metrics if m.cpu_percent > 0])
            memory = np.array([m.memory_mb for m in metrics if m.memory_mb > 0])
            total = float(durations.sum())

            summary['operations'][op_name] = {
                'count': len(metrics),
                'failures': sum(1 for m in metrics if not m.succeeded),
                'total_duration': total,
                'avg_duration': float(durations.mean()),
                'min_duration': float(durations.min()),
                'max_duration': float(durations.max()),
                'p95_duration': float(np.percentile(durations, 95)),
                'std_duration': float(durations.std()) if len(durations) > 1 else 0.0,
                'avg_cpu_percent': float(cpu.mean()) if cpu.size else 0.0,
                'avg_memory_mb': float(memory.mean()) if memory.size else 0.0,
                'peak_memory_mb': float(memory.max()) if memory.size else 0.0,
                'throughput_ops_per_sec': len(metrics) / total if total > 0 else 0.0
            }

        summary['total_duration'] = sum(
            op['total_duration'] for op in summary['operations'].values())
        return summary

    def save_metrics(self, filepath: Path):
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump({
                'metrics': [asdict(m) for m in self.metrics],
                'summary': self.get_summary(),
                'system_info': get_system_info(),
                'timestamp': datetime.now().isoformat()
            }, f, indent=2, default=str)

    def reset(self):
        self.metrics.clear()


class OperationContext:
    """Times the enclosed block and records a PerformanceMetrics entry"""

    def __init__(self, monitor: PerformanceMonitor, operation_name: str,
                 additional_data: Optional[Dict[str, Any]] = None):
        self.monitor = monitor
        self.operation_name = operation_name
        self.additional_data = additional_data or {}
        self.start_time = 0.0
        self.wall_start = 0.0
        self.start_sample: Dict[str, float] = {}

    def __enter__(self):
        self.start_sample = self.monitor._sample()
        self.start_time = time.perf_counter()
        self.wall_start = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        end_sample = self.monitor._sample()

        if exc_type is not None:
            self.additional_data['error'] = exc_type.__name__

        self.monitor.record_metric(PerformanceMetrics(
            operation=self.operation_name,
            duration_seconds=duration,
            cpu_percent=end_sample['cpu_percent'],
            memory_mb=max(self.start_sample['memory_mb'], end_sample['memory_mb']),
            timestamp=self.wall_start,
            succeeded=exc_type is None,
            additional_data=self.additional_data
        ))
        return False


def get_system_info() -> Dict[str, Any]:
    """Host platform and resource snapshot"""
    vm = psutil.virtual_memory()
    return {
        'platform': platform.platform(),
        'python_version': platform.python_version(),
        'machine': platform.machine(),
        'cpu_count_physical': psutil.cpu_count(logical=False),
        'cpu_count_logical': psutil.cpu_count(logical=True),
        'total_memory_gb': round(vm.total / 1024 ** 3, 2),
        'available_memory_gb': round(vm.available / 1024 ** 3, 2),
        'snarkjs_available': shutil.which("snarkjs") is not None,
        'timestamp': datetime.now().isoformat()
    }

# ============================================================================
# RESULTS
# ============================================================================


def _to_serializable(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return _to_serializable(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): _to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_to_serializable(v) for v in obj]
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    # Field elements exceed JSON's safe integer range
    if isinstance(obj, int) and not isinstance(obj, bool) and obj.bit_length() > 53:
        return str(obj)
    return obj


def save_results(results: Dict[str, Any], filepath: Path):
    """Write results as JSON plus a human-readable summary next to it"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump({
            'metadata': {
                'generated_at': datetime.now().isoformat(),
                'system_info': get_system_info(),
            },
            'data': _to_serializable(results)
        }, f, indent=2, default=str)

    summary_path = filepath.parent / f"{filepath.stem}_summary.txt"
    summary_path.write_text(create_results_summary(results))

    logger.info(f"Results saved to {filepath}")
    logger.info(f"Summary saved to {summary_path}")


def create_results_summary(results: Dict[str, Any]) -> str:
    """Render proposal tallies, rejections and timings as text"""
    lines = ["=" * 80, "ZKVOX ANONYMOUS VOTING - RESULTS SUMMARY", "=" * 80,
             f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", ""]

    if 'system_metrics' in results:
        lines.append("SYSTEM:")
        for key, value in results['system_metrics'].items():
            lines.append(f"  {key}: {value}")
        lines.append("")

    if 'proposals' in results:
        lines.append("PROPOSAL TALLIES:")
        for proposal in results['proposals']:
            yes, no = proposal['yes_count'], proposal['no_count']
            total = yes + no
            share = (yes / total * 100) if total else 0.0
            lines.append(
                f"  #{proposal['id']} {proposal['title']}: "
                f"{yes} yes / {no} no ({share:.1f}% yes)")
        lines.append("")

    if results.get('rejections'):
        lines.append("REJECTED SUBMISSIONS:")
        for rejection in results['rejections']:
            lines.append(f"  {rejection['scenario']}: {rejection['code']}")
        lines.append("")

    if 'performance' in results:
        lines.append("PERFORMANCE:")
        for op_name, op in results['performance'].get('operations', {}).items():
            lines.append(
                f"  {op_name}: {op['count']} ops, avg {format_duration(op['avg_duration'])}")
        lines.append("")

    lines.append("=" * 80)
    return "\n".join(lines)


def create_performance_report(monitor: PerformanceMonitor) -> str:
    summary = monitor.get_summary()

    report = ["=" * 80, "ZKVOX ANONYMOUS VOTING - PERFORMANCE REPORT", "=" * 80,
              f"Total Operations: {summary['total_operations']}",
              f"Total Duration: {format_duration(summary['total_duration'])}", ""]

    if not summary['operations']:
        report.append("No performance data available.")

    for op_name, op in summary['operations'].items():
        report.append(f"{op_name.upper()}:")
        report.append(f"  Executions: {op['count']} ({op['failures']} failed)")
        report.append(f"  Average Time: {format_duration(op['avg_duration'])}")
        report.append(
            f"  Min/Max/p95: {format_duration(op['min_duration'])} / "
            f"{format_duration(op['max_duration'])} / {format_duration(op['p95_duration'])}")
        report.append(f"  Throughput: {op['throughput_ops_per_sec']:.2f} ops/sec")
        if op['peak_memory_mb'] > 0:
            report.append(f"  Peak Memory: {op['peak_memory_mb']:.1f} MB")
        report.append("")

    report.append("=" * 80)
    return "\n".join(report)


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format"""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {secs:.1f}s"
    hours, minutes = divmod(minutes, 60)
    return f"{int(hours)}h {int(minutes)}m {secs:.1f}s"

