"""
Unit tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError
from scrapegate.config import Config, ConcurrencyConfig, LevelConfig, ScraperConfig, find_config_file
from scrapegate.protocols import Proxy


@pytest.mark.unit
class TestConcurrencyConfig:
    def test_defaults(self):
        config = ConcurrencyConfig()

        assert config.levels() == {
            "project": None,
            "proxy": LevelConfig(max_requests=1, delay_ms=500),
            "domain": LevelConfig(max_requests=1, delay_ms=1000),
            "session": None,
        }
        assert config.proxy_pool == [None]

    def test_proxy_pool_parsed(self):
        config = ConcurrencyConfig.model_validate(
            {"proxyPool": [{"host": "proxyA", "port": 80}, {"host": "proxyB", "port": 81}]}
        )
        assert config.proxy_pool == [Proxy(host="proxyA", port=80), Proxy(host="proxyB", port=81)]

    @pytest.mark.parametrize(
        "pool",
        [
            [],
            [None, {"host": "proxyA", "port": 80}],
            [{"host": "proxyA", "port": 0}],
            [{"host": "", "port": 80}],
        ],
    )
    def test_invalid_proxy_pool(self, pool):
        with pytest.raises(ValidationError):
            ConcurrencyConfig.model_validate({"proxy_pool": pool})

    @pytest.mark.parametrize("level", [{"max_requests": 0}, {"delay_ms": -1}])
    def test_invalid_level(self, level):
        with pytest.raises(ValidationError):
            ConcurrencyConfig.model_validate({"domain": level})

    def test_explicit_null_disables_optional_levels(self):
        config = ConcurrencyConfig.model_validate({"project": None, "session": None})
        assert config.project is None
        assert config.session is None


@pytest.mark.unit
class TestScraperConfig:
    def test_backoff_bounds(self):
        with pytest.raises(ValidationError):
            ScraperConfig(empty_backoff_base_ms=1000, empty_backoff_max_ms=10)

    def test_workers_positive(self):
        with pytest.raises(ValidationError):
            ScraperConfig(workers=0)


@pytest.mark.unit
class TestConfigLoading:
    def test_from_yaml(self, tmp_path: Path):
        path = tmp_path / "scrapegate.yaml"
        path.write_text(
            """
project_name: sitea
concurrency:
  project:
    maxRequests: 4
    delay: 100
  domain:
    delay: 2000
  proxy_pool:
    - host: proxyA
      port: 8080
scraper:
  workers: 3
monitoring:
  log_level: DEBUG
""",
            encoding="utf-8",
        )

        config = Config.from_yaml(path)

        assert config.project_name == "sitea"
        assert config.concurrency.project == LevelConfig(max_requests=4, delay_ms=100)
        assert config.concurrency.domain == LevelConfig(max_requests=1, delay_ms=2000)
        assert config.concurrency.proxy_pool == [Proxy(host="proxyA", port=8080)]
        assert config.scraper.workers == 3
        assert config.monitoring.log_level == "DEBUG"

    def test_empty_yaml_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "scrapegate.yaml"
        path.write_text("", encoding="utf-8")

        config = Config.from_yaml(path)

        assert config.concurrency == ConcurrencyConfig()
        assert config.scraper == ScraperConfig()

    def test_missing_yaml(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SCRAPEGATE_SCRAPER__WORKERS", "7")
        monkeypatch.setenv("SCRAPEGATE_PROJECT_NAME", "from-env")

        config = Config()

        assert config.scraper.workers == 7
        assert config.project_name == "from-env"

    def test_log_file_parent_created(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "nested" / "scrapegate.log"

        config = Config.model_validate({"monitoring": {"log_file": str(log_file)}})

        assert config.monitoring.log_file == str(log_file)
        assert log_file.parent.is_dir()

    def test_find_config_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None

        (tmp_path / "scrapegate.yml").write_text("scraper: {workers: 2}\n", encoding="utf-8")
        assert find_config_file() == tmp_path / "scrapegate.yml"
