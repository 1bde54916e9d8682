"""Tests for settings loading and service wiring."""

from pathlib import Path

import yaml

from adis.config import ADISSettings, reload_config
from adis.ledger import InMemoryLedger
from adis.lineage import InMemoryDocumentStore, SQLiteDocumentStore
from adis.services import build_services
from adis.verification import TamperPolicy


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ADIS_INSTITUTION_NAME", "Example State University")
        monkeypatch.setenv("ADIS_TAMPER_PDF_MINOR_RATIO", "0.02")
        cfg = ADISSettings()
        assert cfg.institution_name == "Example State University"
        assert cfg.tamper_pdf_minor_ratio == 0.02

    def test_cors_origins_list(self):
        cfg = ADISSettings(cors_origins="http://a.edu, http://b.edu,")
        assert cfg.cors_origins_list == ["http://a.edu", "http://b.edu"]

    def test_storage_dirs(self, tmp_path):
        cfg = ADISSettings(storage_root=tmp_path)
        assert cfg.originals_dir == tmp_path / "originals"
        assert cfg.processed_dir == tmp_path / "processed"
        assert cfg.watermarked_dir == tmp_path / "watermarked"

    def test_ledger_configured(self):
        assert ADISSettings(ledger_rpc_url="").ledger_configured is False
        assert ADISSettings(ledger_rpc_url="http://127.0.0.1:8545",
                            ledger_contract_address="0x" + "c0" * 20).ledger_configured is True

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"institution_name": "YAML University", "api_port": 9000}))
        cfg = ADISSettings.from_yaml(path)
        assert cfg.institution_name == "YAML University"
        assert cfg.api_port == 9000

    def test_from_missing_yaml_uses_defaults(self, tmp_path):
        cfg = ADISSettings.from_yaml(tmp_path / "absent.yaml")
        assert cfg.api_port == 8000

    def test_reload_config(self, tmp_path):
        import adis.config
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"rate_limit_per_minute": 5}))
        try:
            assert reload_config(path).rate_limit_per_minute == 5
            assert adis.config.get_config().rate_limit_per_minute == 5
        finally:
            adis.config._config = None

    def test_tamper_policy_from_settings(self):
        policy = TamperPolicy.from_settings(ADISSettings(tamper_binary_minor_ratio=0.1,
                                                         tamper_watermark_removal_confidence=90))
        assert policy.binary_minor_ratio == 0.1
        assert policy.watermark_removal_confidence == 90
        assert policy.pdf_minor_ratio == 0.01


class TestBuildServices:
    def test_defaults_to_memory_backends(self, tmp_path):
        services = build_services(ADISSettings(storage_root=tmp_path, database_path="", ledger_rpc_url=""))
        assert isinstance(services.store, InMemoryDocumentStore)
        assert isinstance(services.ledger, InMemoryLedger)
        assert services.files.root == Path(tmp_path)

    def test_sqlite_store_when_configured(self, tmp_path):
        cfg = ADISSettings(storage_root=tmp_path, database_path=str(tmp_path / "adis.db"), ledger_rpc_url="")
        services = build_services(cfg)
        try:
            assert isinstance(services.store, SQLiteDocumentStore)
        finally:
            services.close()
