from pathlib import Path

import pytest
from typer.testing import CliRunner

from flashed import __version__, cli
from flashed.state import JobStatus
from flashed.storage import JsonFileStore, load_sessions, load_versions

from conftest import FakeCompletionClient


@pytest.fixture
def fake_llm(monkeypatch: pytest.MonkeyPatch) -> FakeCompletionClient:
    client = FakeCompletionClient()
    monkeypatch.setattr(cli, "_build_client_or_exit", lambda config, llm: client)
    return client


def _stored_sessions(state_dir: Path):
    return load_sessions(JsonFileStore(state_dir))


def test_version_flag(runner: CliRunner) -> None:
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_generate_writes_documents_and_state(
    runner: CliRunner, sample_config: dict, fake_llm: FakeCompletionClient
) -> None:
    result = runner.invoke(
        cli.app,
        ["generate", "A cozy coffee shop", "--config", str(sample_config["path"]), "-n", "5"],
    )

    assert result.exit_code == 0, result.stdout
    assert "Wrote 5 file(s)" in result.stdout
    (session,) = _stored_sessions(sample_config["state_dir"])
    assert [art.status for art in session.artifacts] == [JobStatus.COMPLETE] * 5
    written = sorted(p.name for p in (sample_config["output_dir"] / session.id).glob("*.html"))
    assert written == [f"{i}-style-{i}.html" for i in range(1, 6)]
    assert len(load_versions(JsonFileStore(sample_config["state_dir"]))) == 5
    variant_calls = [call for call in fake_llm.calls if "**TARGET STYLE:**" in call.text]
    assert all("Primary Color: #3b2416" in call.text for call in variant_calls)


def test_generate_rejects_clone_without_reference(runner: CliRunner, sample_config: dict, fake_llm) -> None:
    result = runner.invoke(cli.app, ["generate", "coffee", "--config", str(sample_config["path"]), "--clone"])
    assert result.exit_code != 0
    assert fake_llm.calls == []


def test_generate_with_image_sends_data_url(
    runner: CliRunner, sample_config: dict, fake_llm: FakeCompletionClient, tmp_path: Path
) -> None:
    image = tmp_path / "moodboard.png"
    image.write_bytes(b"\x89PNG fake")

    result = runner.invoke(
        cli.app,
        ["generate", "coffee", "--config", str(sample_config["path"]), "--image", str(image), "--clone"],
    )

    assert result.exit_code == 0, result.stdout
    assert fake_llm.calls[0].image_data_url.startswith("data:image/png;base64,")
    assert all("Replicate the layout" in call.text for call in fake_llm.calls[1:])


def test_config_error_exits_with_code_one(runner: CliRunner, tmp_path: Path) -> None:
    bad = tmp_path / "bad.toml"
    bad.write_text('surprise = "field"\n', encoding="utf-8")

    result = runner.invoke(cli.app, ["sessions", "--config", str(bad)])

    assert result.exit_code == 1
    assert "Configuration error" in result.stdout


def test_site_refine_and_versions_flow(
    runner: CliRunner, sample_config: dict, fake_llm: FakeCompletionClient
) -> None:
    config_args = ["--config", str(sample_config["path"])]
    result = runner.invoke(cli.app, ["site", "Family bakery", "-p", "Home", "-p", "Menu", *config_args])
    assert result.exit_code == 0, result.stdout
    (site_session,) = _stored_sessions(sample_config["state_dir"])
    site_dir = sample_config["output_dir"] / site_session.id / "site"
    assert sorted(p.name for p in site_dir.glob("*.html")) == ["home.html", "menu.html"]

    result = runner.invoke(cli.app, ["add-page", site_session.id, "Contact", *config_args])
    assert result.exit_code == 0, result.stdout
    assert (site_dir / "contact.html").exists()

    runner.invoke(cli.app, ["generate", "coffee", *config_args])
    single = _stored_sessions(sample_config["state_dir"])[-1]
    artifact = single.artifacts[0]

    result = runner.invoke(cli.app, ["refine", single.id, artifact.id, "Darker header", *config_args])
    assert result.exit_code == 0, result.stdout
    refined = _stored_sessions(sample_config["state_dir"])[-1].artifacts[0]
    assert "Refined" in refined.html

    result = runner.invoke(cli.app, ["versions", artifact.id, *config_args])
    assert result.exit_code == 0
    assert "Refinement" in result.stdout

    history = [entry for entry in load_versions(JsonFileStore(sample_config["state_dir"])) if entry.artifact_id == artifact.id]
    result = runner.invoke(cli.app, ["restore", history[0].id, *config_args])
    assert result.exit_code == 0, result.stdout
    restored = _stored_sessions(sample_config["state_dir"])[-1].artifacts[0]
    assert restored.html == artifact.html

    result = runner.invoke(cli.app, ["sessions", *config_args])
    assert result.exit_code == 0
    assert "Sessions" in result.stdout


def test_upgrade_and_variations(runner: CliRunner, sample_config: dict, fake_llm: FakeCompletionClient) -> None:
    config_args = ["--config", str(sample_config["path"])]
    runner.invoke(cli.app, ["generate", "coffee", *config_args])
    session = _stored_sessions(sample_config["state_dir"])[0]
    artifact = session.artifacts[0]

    result = runner.invoke(cli.app, ["variations", session.id, artifact.id, *config_args])
    assert result.exit_code == 0, result.stdout
    variation_dir = sample_config["output_dir"] / session.id / "variations"
    assert len(list(variation_dir.glob("*.html"))) == 3

    result = runner.invoke(cli.app, ["upgrade", session.id, artifact.id, *config_args])
    assert result.exit_code == 0, result.stdout
    upgraded = _stored_sessions(sample_config["state_dir"])[0]
    assert upgraded.mode == "site"
    assert upgraded.site.home.html == artifact.html

    result = runner.invoke(cli.app, ["upgrade", session.id, artifact.id, *config_args])
    assert result.exit_code == 1


def test_unknown_session_exits_with_code_one(runner: CliRunner, sample_config: dict, fake_llm) -> None:
    result = runner.invoke(cli.app, ["refine", "sess-missing", "art-x", "tweak", "--config", str(sample_config["path"])])
    assert result.exit_code == 1
    assert fake_llm.calls == []


def test_publish_requires_endpoint(runner: CliRunner, sample_config: dict) -> None:
    result = runner.invoke(cli.app, ["publish", "sess-1", "art-1", "--config", str(sample_config["path"])])
    assert result.exit_code == 1
    assert "publish_url" in result.stdout


def test_draft_commands(runner: CliRunner, sample_config: dict) -> None:
    config_args = ["--config", str(sample_config["path"])]

    result = runner.invoke(cli.app, ["draft", "show", *config_args])
    assert "No draft saved" in result.stdout

    result = runner.invoke(cli.app, ["draft", "save", "Bakery in Lisbon", "--site", "--pages", "Home,Menu", *config_args])
    assert result.exit_code == 0
    assert "saved" in result.stdout

    result = runner.invoke(cli.app, ["draft", "show", *config_args])
    assert "Bakery in Lisbon" in result.stdout
    assert "yes" in result.stdout

    result = runner.invoke(cli.app, ["draft", "clear", *config_args])
    assert result.exit_code == 0
    result = runner.invoke(cli.app, ["draft", "show", *config_args])
    assert "No draft saved" in result.stdout


def test_generating_clears_the_draft(runner: CliRunner, sample_config: dict, fake_llm) -> None:
    config_args = ["--config", str(sample_config["path"])]
    runner.invoke(cli.app, ["draft", "save", "coffee", *config_args])

    runner.invoke(cli.app, ["generate", "coffee", *config_args])

    result = runner.invoke(cli.app, ["draft", "show", *config_args])
    assert "No draft saved" in result.stdout


def test_workspace_uses_configured_autosave_interval(engine_config) -> None:
    config = engine_config.model_copy(update={"draft_autosave_seconds": 5.0})
    workspace = cli._open_workspace(config)
    assert workspace.drafts.autosave_interval == 5.0
