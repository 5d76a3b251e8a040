import logging
from pathlib import Path

import pytest
import yaml

from config.config import ProtocolConfig, SystemConfig, ZKConfig, load_config, save_config


class TestConfigDefaults:

    def test_protocol_defaults(self):
        protocol = ProtocolConfig()
        assert protocol.tree_depth == 20
        assert protocol.root_history_size == 30
        assert protocol.zero_value == 0

    @pytest.mark.parametrize("kwargs", [
        {"tree_depth": 0},
        {"tree_depth": 33},
        {"root_history_size": 0},
        {"zero_value": -1},
    ])
    def test_protocol_validation(self, kwargs):
        with pytest.raises(ValueError):
            ProtocolConfig(**kwargs)

    def test_zk_artifact_paths_follow_build_dir(self):
        zk = ZKConfig(build_dir="build")
        assert zk.wasm_file == Path("build/vote_js/vote.wasm")
        assert zk.zkey_file == Path("build/vote_final.zkey")
        assert zk.vkey_file == Path("build/verification_key.json")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            ZKConfig(backend="plonk")

    def test_debug_mode_raises_log_level(self):
        assert SystemConfig(enable_debug_mode=True).log_level == "DEBUG"

    def test_ensure_directories(self, tmp_path):
        config = SystemConfig(log_dir=tmp_path / "l", results_dir=tmp_path / "r")
        config.ensure_directories()
        assert (tmp_path / "l").is_dir()
        assert (tmp_path / "r").is_dir()


class TestConfigFiles:

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = SystemConfig(
            protocol=ProtocolConfig(tree_depth=8, root_history_size=5),
            zk_config=ZKConfig(backend="snarkjs", snarkjs_bin="/opt/snarkjs", proof_timeout=30),
            log_level="WARNING",
        )
        save_config(config, path)
        loaded = load_config(path)

        assert loaded.protocol == config.protocol
        assert loaded.zk_config == config.zk_config
        assert loaded.log_level == "WARNING"

    def test_saved_file_is_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        save_config(SystemConfig(), path)
        data = yaml.safe_load(path.read_text())
        assert data['protocol']['tree_depth'] == 20
        assert data['zk_proofs']['backend'] == "hmac"

    def test_missing_file_uses_defaults(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            config = load_config(tmp_path / "missing.yaml")
        assert config.protocol.tree_depth == 20
        assert "not found" in caplog.text

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("protocol:\n  tree_depth: 10\n")
        config = load_config(path)
        assert config.protocol.tree_depth == 10
        assert config.protocol.root_history_size == 30

    def test_invalid_file_uses_defaults(self, tmp_path, caplog):
        path = tmp_path / "config.yaml"
        path.write_text("protocol:\n  tree_depth: 99\n")
        with caplog.at_level(logging.WARNING):
            config = load_config(path)
        assert config.protocol.tree_depth == 20
        assert "Could not load config" in caplog.text

    def test_malformed_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("protocol: [unclosed\n")
        assert load_config(path).protocol.tree_depth == 20
