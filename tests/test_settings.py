"""
Tests — Settings loading and the per-topic queue registry.

Run:
  pytest tests/test_settings.py -v
"""
import pytest

from config.settings import (
    DelayQueueConfig, Settings, StoreConfig,
    get_settings, load_settings, reset_settings,
)


class TestDelayQueueConfig:

    def test_defaults(self):
        cfg = DelayQueueConfig()
        assert cfg.default_delay_seconds == 30
        assert cfg.batch_size == 50
        assert cfg.grace_period_seconds == 360
        assert cfg.pool_extension_seconds == 1800
        assert cfg.key_prefix == "queue_delay"

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            DelayQueueConfig(batch_size=0)

    def test_negative_default_delay_rejected(self):
        with pytest.raises(ValueError):
            DelayQueueConfig(default_delay_seconds=-1)

    def test_grace_must_exceed_poll_interval(self):
        with pytest.raises(ValueError):
            DelayQueueConfig(grace_period_seconds=5, poll_interval_seconds=5)

    def test_store_defaults(self):
        cfg = StoreConfig()
        assert cfg.backend == "memory"
        assert cfg.redis_url == "redis://localhost:6379"


class TestLoadSettings:

    def teardown_method(self):
        reset_settings()

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings == Settings()

    def test_yaml_with_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_REDIS_URL", "redis://cache:6380/2")
        path = tmp_path / "settings.yaml"
        path.write_text(
            "queue:\n"
            "  default_delay_seconds: 1200\n"
            "  batch_size: 20\n"
            "  grace_period_seconds: 600\n"
            "store:\n"
            "  backend: redis\n"
            "  redis_url: ${TEST_REDIS_URL}\n"
            "topics: [gateway-offline, kid-left]\n"
        )
        settings = load_settings(str(path))
        assert settings.queue.default_delay_seconds == 1200
        assert settings.queue.batch_size == 20
        assert settings.queue.grace_period_seconds == 600
        assert settings.queue.pool_extension_seconds == 1800
        assert settings.store.backend == "redis"
        assert settings.store.redis_url == "redis://cache:6380/2"
        assert settings.topics == ["gateway-offline", "kid-left"]

    def test_unset_env_var_left_verbatim(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("queue:\n  key_prefix: ${NOT_SET_ANYWHERE}\n")
        assert load_settings(str(path)).queue.key_prefix == "${NOT_SET_ANYWHERE}"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("topics: [from-env]\n")
        monkeypatch.setenv("DELAY_QUEUE_CONFIG", str(path))
        assert load_settings().topics == ["from-env"]

    def test_get_settings_is_cached(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DELAY_QUEUE_CONFIG", str(tmp_path / "absent.yaml"))
        reset_settings()
        assert get_settings() is get_settings()


class TestQueueRegistry:

    def setup_method(self):
        from delay_queue.registry import reset_delay_queues
        from store.store_factory import reset_store
        reset_delay_queues()
        reset_store()
        reset_settings()

    def teardown_method(self):
        self.setup_method()

    @pytest.fixture(autouse=True)
    def _no_config_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DELAY_QUEUE_CONFIG", str(tmp_path / "absent.yaml"))

    def test_one_queue_per_topic(self):
        from delay_queue.registry import get_delay_queue
        assert get_delay_queue("a") is get_delay_queue("a")
        assert get_delay_queue("a") is not get_delay_queue("b")

    def test_topics_share_the_store(self):
        from delay_queue.registry import get_delay_queue
        from store.store_memory import InMemoryStore
        a, b = get_delay_queue("a"), get_delay_queue("b")
        assert isinstance(a.content, InMemoryStore)
        assert a.content is b.content
        assert a.index_key != b.index_key

    def test_registered_topics(self):
        from delay_queue.registry import get_delay_queue, registered_topics
        get_delay_queue("z")
        get_delay_queue("a")
        assert registered_topics() == ["a", "z"]

    def test_configured_topics_are_registered(self, tmp_path, monkeypatch):
        from delay_queue.registry import register_configured_topics, registered_topics
        path = tmp_path / "topics.yaml"
        path.write_text("topics: [gateway-offline, kid-left]\n")
        monkeypatch.setenv("DELAY_QUEUE_CONFIG", str(path))

        assert register_configured_topics() == ["gateway-offline", "kid-left"]
        assert registered_topics() == ["gateway-offline", "kid-left"]

    def test_no_configured_topics(self):
        from delay_queue.registry import register_configured_topics, registered_topics
        assert register_configured_topics() == []
        assert registered_topics() == []

    @pytest.mark.asyncio
    async def test_registry_queue_round_trip(self):
        from delay_queue.registry import get_delay_queue
        q = get_delay_queue("roundtrip")
        await q.push("now", message_id="n", delay_ms=0)
        assert await q.pop() == ["now"]
