import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class ProtocolConfig:
    tree_depth: int = 20
    root_history_size: int = 30
    zero_value: int = 0

    def __post_init__(self):
        if not 1 <= self.tree_depth <= 32:
            raise ValueError(f"tree_depth must be between 1 and 32, got {self.tree_depth}")
        if self.root_history_size < 1:
            raise ValueError("root_history_size must be positive")
        if self.zero_value < 0:
            raise ValueError("zero_value must be a field element")


@dataclass
class ZKConfig:
    circuit_name: str = "vote"
    backend: str = "hmac"
    build_dir: Path = field(default_factory=lambda: Path("circuits/build"))
    wasm_file: Optional[Path] = None
    zkey_file: Optional[Path] = None
    vkey_file: Optional[Path] = None
    snarkjs_bin: str = "snarkjs"
    proof_timeout: int = 60
    max_concurrent_proofs: int = 4

    def __post_init__(self):
        if self.backend not in ("hmac", "snarkjs"):
            raise ValueError(f"Unknown proof backend: {self.backend}")

        # Artifact paths default to the circom build layout
        self.build_dir = Path(self.build_dir)
        if self.wasm_file is None:
            self.wasm_file = self.build_dir / f"{self.circuit_name}_js" / f"{self.circuit_name}.wasm"
        if self.zkey_file is None:
            self.zkey_file = self.build_dir / f"{self.circuit_name}_final.zkey"
        if self.vkey_file is None:
            self.vkey_file = self.build_dir / "verification_key.json"
        self.wasm_file = Path(self.wasm_file)
        self.zkey_file = Path(self.zkey_file)
        self.vkey_file = Path(self.vkey_file)


@dataclass
class SystemConfig:
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    zk_config: ZKConfig = field(default_factory=ZKConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    log_level: str = "INFO"
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)
        if self.enable_debug_mode:
            self.log_level = "DEBUG"

    def ensure_directories(self):
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.results_dir.mkdir(parents=True, exist_ok=True)


def _config_to_dict(config: SystemConfig) -> Dict[str, Any]:
    zk = config.zk_config
    return {
        'protocol': {
            'tree_depth': config.protocol.tree_depth,
            'root_history_size': config.protocol.root_history_size,
            'zero_value': config.protocol.zero_value
        },
        'zk_proofs': {
            'circuit_name': zk.circuit_name,
            'backend': zk.backend,
            'build_dir': str(zk.build_dir),
            'wasm_file': str(zk.wasm_file),
            'zkey_file': str(zk.zkey_file),
            'vkey_file': str(zk.vkey_file),
            'snarkjs_bin': zk.snarkjs_bin,
            'proof_timeout': zk.proof_timeout,
            'max_concurrent_proofs': zk.max_concurrent_proofs
        },
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'log_level': config.log_level,
        'enable_debug_mode': config.enable_debug_mode
    }


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using default configuration")
        return SystemConfig()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        protocol_data = config_data.get('protocol', {})
        protocol = ProtocolConfig(
            tree_depth=int(protocol_data.get('tree_depth', 20)),
            root_history_size=int(protocol_data.get('root_history_size', 30)),
            zero_value=int(protocol_data.get('zero_value', 0))
        )

        zk_data = config_data.get('zk_proofs', {})
        zk_config = ZKConfig(
            circuit_name=zk_data.get('circuit_name', 'vote'),
            backend=zk_data.get('backend', 'hmac'),
            build_dir=Path(zk_data.get('build_dir', 'circuits/build')),
            wasm_file=zk_data.get('wasm_file'),
            zkey_file=zk_data.get('zkey_file'),
            vkey_file=zk_data.get('vkey_file'),
            snarkjs_bin=zk_data.get('snarkjs_bin', 'snarkjs'),
            proof_timeout=int(zk_data.get('proof_timeout', 60)),
            max_concurrent_proofs=int(zk_data.get('max_concurrent_proofs', 4))
        )

        return SystemConfig(
            protocol=protocol,
            zk_config=zk_config,
            log_dir=Path(config_data.get('log_dir', 'logs')),
            results_dir=Path(config_data.get('results_dir', 'results')),
            log_level=config_data.get('log_level', 'INFO'),
            enable_debug_mode=config_data.get('enable_debug_mode', False)
        )
    except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Could not load config file {config_path}: {e}")
        logger.warning("Using default configuration")

    return SystemConfig()


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(_config_to_dict(config), f, default_flow_style=False)

    logger.info(f"Configuration saved to {config_path}")
