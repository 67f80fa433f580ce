import os
from pathlib import Path

import pytest

from netsmog.auth.secrets import SecretStore, read_secrets
from netsmog.catalogue.config import (
    DEFAULT_COUNT,
    DEFAULT_INTERVAL_S,
    CatalogueHolder,
    load_config,
    parse_config,
)
from netsmog.errors import ConfigError
from netsmog.util.duration import parse_duration_to_seconds
from netsmog_web.server import reload_state

CONFIG = """\
[main]
title = "Test net"
maintainer = "noc@example.net"
listen = "127.0.0.1:9090"
secrets = "secrets.toml"

[probes.ping]
interval = "2m"

[workers.w1]
hostname = "w1.example.net"
display = "Office"

[targets.open.a]
host = "192.0.2.1"

[targets.closed.meta]
workers = ["w1"]

[targets.closed.b]
title = "B"
host = "192.0.2.2"
interval = "1m"
count = 3
"""


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_meta_table_becomes_group_membership() -> None:
    config = parse_config(
        {"targets": {"g": {"meta": {"workers": ["w1", "w2"]}, "t": {"host": "192.0.2.1"}}}}
    )
    group = config.catalogue.groups["g"]
    assert group.membership == ("w1", "w2")
    assert list(group.targets) == ["t"]


def test_target_defaults() -> None:
    config = parse_config({"targets": {"g": {"t": {"host": "example.net"}}}})
    target = config.catalogue.groups["g"].targets["t"]
    assert target.probe == "ping"
    assert target.title == "t"
    assert target.count == DEFAULT_COUNT
    assert target.interval == DEFAULT_INTERVAL_S


def test_interval_falls_back_to_check_kind_setting() -> None:
    config = parse_config(
        {
            "probes": {"ping": {"interval": 90}},
            "targets": {"g": {"a": {"host": "192.0.2.1"}, "b": {"host": "192.0.2.2", "interval": "1m"}}},
        }
    )
    targets = config.catalogue.groups["g"].targets
    assert targets["a"].interval == 90.0
    assert targets["b"].interval == 60.0


@pytest.mark.parametrize(
    "entry",
    [
        {},
        {"host": ""},
        {"host": "192.0.2.1", "count": 0},
        {"host": "192.0.2.1", "count": "5"},
        {"host": "192.0.2.1", "count": True},
        {"host": "192.0.2.1", "interval": "soon"},
        {"host": "192.0.2.1", "interval": -1},
        {"host": "192.0.2.1", "workers": "w1"},
    ],
)
def test_invalid_targets_are_config_errors(entry) -> None:
    with pytest.raises(ConfigError):
        parse_config({"targets": {"g": {"t": entry}}})


def test_load_config_resolves_secrets_next_to_config(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.toml", CONFIG)
    config = load_config(path)
    assert config.title == "Test net"
    assert config.listen == "127.0.0.1:9090"
    assert config.secrets_path == tmp_path.resolve() / "secrets.toml"
    assert config.workers["w1"].display == "Office"
    assert config.catalogue.groups["open"].targets["a"].interval == 120.0
    assert config.catalogue.groups["closed"].targets["b"].count == 3
    assert config.catalogue.groups["closed"].membership == ("w1",)
    assert len(config.catalogue) == 2


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.toml")
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, "bad.toml", "[main\ntitle = "))


def test_holder_reload_swaps_snapshot(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.toml", CONFIG)
    holder = CatalogueHolder.from_file(path)
    before = holder.catalogue
    assert sorted(before.groups) == ["closed", "open"]

    path.write_text(CONFIG + '\n[targets.extra.c]\nhost = "192.0.2.3"\n', encoding="utf-8")
    holder.reload()
    assert sorted(holder.catalogue.groups) == ["closed", "extra", "open"]
    assert sorted(before.groups) == ["closed", "open"]


def test_failed_reload_keeps_previous_snapshot(tmp_path: Path) -> None:
    path = _write(tmp_path, "config.toml", CONFIG)
    holder = CatalogueHolder.from_file(path)
    old = holder.config

    path.write_text('[targets.g.t]\ncount = 3\n', encoding="utf-8")
    with pytest.raises(ConfigError):
        holder.reload()
    assert holder.config is old


def test_secrets_file_round_trip_and_reload(tmp_path: Path) -> None:
    path = _write(tmp_path, "secrets.toml", 'w1 = "one"\n"w-2" = "two"\n')
    store = SecretStore(path)
    assert store.lookup("w1") == "one"
    assert store("w-2") == "two"
    assert store.lookup("w3") is None

    path.write_text('w1 = "uno"\n', encoding="utf-8")
    store.reload()
    assert store.lookup("w1") == "uno"
    assert store.workers() == ["w1"]


def test_broken_secrets_reload_keeps_old_secrets(tmp_path: Path) -> None:
    path = _write(tmp_path, "secrets.toml", 'w1 = "one"\n')
    store = SecretStore(path)
    os.remove(path)
    with pytest.raises(ConfigError):
        store.reload()
    assert store.lookup("w1") == "one"


def test_secrets_must_be_strings(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        read_secrets(_write(tmp_path, "secrets.toml", "w1 = 5\n"))


@pytest.mark.parametrize(
    "text,expected",
    [("30", 30.0), (45, 45.0), ("500ms", 0.5), ("1m", 60.0), ("2h", 7200.0), ("1d", 86400.0), ("", None)],
)
def test_parse_duration(text, expected) -> None:
    assert parse_duration_to_seconds(text) == expected


@pytest.mark.parametrize("text", ["abc", "5w", True])
def test_parse_duration_rejects_garbage(text) -> None:
    with pytest.raises(ValueError):
        parse_duration_to_seconds(text)


@pytest.mark.parametrize(
    "doc",
    [
        ["not", "a", "table"],
        {"main": "oops"},
        {"probes": 3},
        {"workers": "x"},
        {"targets": [1]},
        {"targets": {"g": "t"}},
    ],
)
def test_top_level_sections_must_be_tables(doc) -> None:
    with pytest.raises(ConfigError):
        parse_config(doc)


def test_load_config_rejects_scalar_main(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, "config.toml", 'main = "x"\n'))


def _state(tmp_path: Path):
    _write(tmp_path, "secrets.toml", 'w1 = "one"\n')
    holder = CatalogueHolder.from_file(_write(tmp_path, "config.toml", CONFIG))
    return holder, SecretStore(holder.config.secrets_path)


def test_reload_state_installs_config_and_secrets_together(tmp_path: Path) -> None:
    holder, secrets = _state(tmp_path)
    (tmp_path / "config.toml").write_text(CONFIG + '\n[targets.extra.c]\nhost = "192.0.2.3"\n', encoding="utf-8")
    (tmp_path / "secrets.toml").write_text('w1 = "uno"\n', encoding="utf-8")

    reload_state(holder, secrets)
    assert sorted(holder.catalogue.groups) == ["closed", "extra", "open"]
    assert secrets.lookup("w1") == "uno"


def test_reload_state_with_broken_secrets_keeps_both(tmp_path: Path) -> None:
    holder, secrets = _state(tmp_path)
    old = holder.config
    (tmp_path / "config.toml").write_text(CONFIG + '\n[targets.extra.c]\nhost = "192.0.2.3"\n', encoding="utf-8")
    (tmp_path / "secrets.toml").write_text("w1 = 5\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        reload_state(holder, secrets)
    assert holder.config is old
    assert secrets.lookup("w1") == "one"


def test_reload_state_with_broken_config_keeps_both(tmp_path: Path) -> None:
    holder, secrets = _state(tmp_path)
    old = holder.config
    (tmp_path / "config.toml").write_text('main = "x"\n', encoding="utf-8")
    (tmp_path / "secrets.toml").write_text('w1 = "uno"\n', encoding="utf-8")

    with pytest.raises(ConfigError):
        reload_state(holder, secrets)
    assert holder.config is old
    assert secrets.lookup("w1") == "one"
