"""Tests for the INI config layer (sdk/textdag/config.py)."""

from datetime import timedelta

import pytest

from engines.simple_engine import SimpleEngine
from textdag.config import (
    CONFIG_ENV,
    get_bool,
    get_int,
    load_corpus_config,
    load_engine,
    read_config,
    write_default_config,
)


class TestReadConfig:
    def test_flat_keys(self, config_file):
        config = read_config(config_file)
        assert config["corpus.batch_size"] == "2"
        assert config["engine.provider"] == "simple"
        assert config["engine.stopwords"] == "a, an"
        assert config["search.top_k"] == "5"

    def test_env_fallback(self, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, str(config_file))
        assert read_config()["corpus.concurrency"] == "3"

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV, raising=False)
        assert read_config(tmp_path / "nope.ini") == {}
        assert read_config() == {}

    def test_comments_ignored(self, tmp_path):
        path = tmp_path / "c.ini"
        path.write_text("# comment\n; other\n[corpus]\nbatch_size = 4\n")
        assert read_config(path) == {"corpus.batch_size": "4"}

    def test_write_default(self, tmp_path):
        path = write_default_config(tmp_path / "sub" / "textdag.ini")
        config = read_config(path)
        assert config["corpus.batch_size"] == "100"
        assert config["engine.provider"] == "simple"

    def test_write_default_keeps_existing(self, config_file):
        write_default_config(config_file)
        assert read_config(config_file)["corpus.batch_size"] == "2"


class TestValues:
    def test_get_bool(self):
        config = {"a": "true", "b": "no", "c": ""}
        assert get_bool(config, "a") is True
        assert get_bool(config, "b") is False
        assert get_bool(config, "c", default=True) is True
        assert get_bool(config, "missing") is False

    def test_get_int(self):
        assert get_int({"n": "12"}, "n", 0) == 12
        assert get_int({}, "n", 7) == 7
        with pytest.raises(ValueError, match="must be an integer"):
            get_int({"n": "lots"}, "n", 0)


class TestLoaders:
    def test_corpus_config(self, config_file):
        config = load_corpus_config(read_config(config_file))
        assert config.batch_size == 2
        assert config.concurrency == 3
        assert config.extractor_timeout is None

    def test_corpus_config_timeout_and_overrides(self):
        config = load_corpus_config({"corpus.extractor_timeout_ms": "500"}, concurrency=1)
        assert config.extractor_timeout == timedelta(milliseconds=500)
        assert config.concurrency == 1
        assert config.batch_size == 100

    def test_corpus_config_invalid(self):
        with pytest.raises(ValueError):
            load_corpus_config({"corpus.batch_size": "0"})

    def test_engine(self, config_file):
        engine = load_engine(read_config(config_file))
        assert isinstance(engine, SimpleEngine)
        assert engine.tokenize("A Cat and an Owl") == ["cat", "and", "owl"]

    def test_default_engine(self):
        assert load_engine({}).name() == "simple"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown text engine provider"):
            load_engine({"engine.provider": "spacy"})
