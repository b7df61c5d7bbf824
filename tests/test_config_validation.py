from pathlib import Path
import textwrap
import logging

import pytest

from flashed.config import ConfigError, EngineConfig, load_config


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_loads_sample_config(sample_config: dict) -> None:
    config = load_config(sample_config["path"])

    assert config.llm == "gpt-4o-mini"
    assert config.batch_width == 3
    assert config.brand_kit.font_family == "Fraunces"
    assert config.state_dir == sample_config["state_dir"]
    assert config.batch_timeout_seconds is None


def test_rejects_unknown_keys(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        """
        output_dir = "./outputs"
        unexpected = "nope"
        """,
    )

    with pytest.raises(ConfigError) as exc:
        load_config(path)

    assert "extra" in str(exc.value).lower()


@pytest.mark.parametrize(
    "body,field",
    [
        ("variant_count = 0", "variant_count"),
        ("variant_count = 11", "variant_count"),
        ("batch_width = 0", "batch_width"),
        ("fetch_timeout_seconds = 0", "fetch_timeout_seconds"),
        ("batch_timeout_seconds = -5", "batch_timeout_seconds"),
    ],
)
def test_rejects_out_of_range_values(tmp_path: Path, body: str, field: str) -> None:
    with pytest.raises(ConfigError) as exc:
        load_config(_write_config(tmp_path, body))

    assert field in str(exc.value)


def test_rejects_incomplete_brand_kit(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        """
        [brand_kit]
        primary_color = "#000"
        """,
    )

    with pytest.raises(ConfigError) as exc:
        load_config(path)

    assert "font_family" in str(exc.value)


def test_rejects_brand_kit_catalogue(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        """
        [[brand_kits]]
        name = "One"
        """,
    )

    with pytest.raises(ConfigError) as exc:
        load_config(path)

    assert "brand_kit" in str(exc.value)


def test_missing_and_malformed_files(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.toml")

    with pytest.raises(ConfigError) as exc:
        load_config(_write_config(tmp_path, "variant_count = ["))
    assert "TOML" in str(exc.value)


def test_warns_on_unusual_variant_count(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    config = load_config(_write_config(tmp_path, "variant_count = 4"))

    assert config.variant_count == 4
    assert "outside the usual options" in caplog.text


def test_hash_tracks_changes() -> None:
    base = EngineConfig()
    assert base.hash == EngineConfig().hash
    assert base.hash != EngineConfig(batch_width=5).hash
