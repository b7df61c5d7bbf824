import asyncio
import json
import re
import textwrap
from pathlib import Path
from typing import Callable, List, Optional, Union

import pytest
from typer.testing import CliRunner

from flashed.config import EngineConfig
from flashed.llm.client import CompletionRequest
from flashed.state import SessionStore

_STYLE_COUNT = re.compile(r"raw JSON array of (\d+) strings")
_TARGET_STYLE = re.compile(r"\*\*TARGET STYLE:\*\* (.+)")
_PAGE_TO_BUILD = re.compile(r"\*\*PAGE TO BUILD:\*\* (.+?) \(")
_VARIATION = re.compile(r"\*\*STYLE DIRECTION:\*\* (.+)")

Response = Union[str, List[str], BaseException]


def make_html(label: str) -> str:
    """A small but valid document that mentions `label`."""
    body = "".join(f"<p>{label} paragraph {i}</p>" for i in range(5))
    return (
        "<!DOCTYPE html>\n<html>\n<head><title>"
        f"{label}</title><style>body {{ font-family: serif; }}</style></head>\n"
        f"<body><h1>{label}</h1>{body}</body>\n</html>"
    )


def default_responder(request: CompletionRequest) -> Response:
    """Answer the prompts the engine sends the way a cooperative model would."""
    text = request.text
    match = _STYLE_COUNT.search(text)
    if match:
        count = int(match.group(1))
        return json.dumps([f"Style {i + 1}" for i in range(count)])
    if "Determine ONE cohesive visual style" in text:
        return '"Warm Rustic Editorial"'
    match = _PAGE_TO_BUILD.search(text)
    if match:
        return "```html\n" + make_html(f"Page {match.group(1)}") + "\n```"
    match = _VARIATION.search(text)
    if match:
        return make_html(f"Variation {match.group(1)}")
    match = _TARGET_STYLE.search(text)
    if match:
        return make_html(match.group(1).strip())
    if "REFINEMENT REQUEST" in text:
        return make_html("Refined")
    return make_html("Generic")


class FakeCompletionClient:
    """
    Scripted completion client.

    `responder(request)` returns the full text, a list of chunks, or an exception
    to raise. Streams are split into `chunk_size` pieces with a yield to the
    event loop between chunks so concurrent jobs interleave.
    """

    def __init__(
        self,
        responder: Callable[[CompletionRequest], Response] = default_responder,
        *,
        chunk_size: int = 64,
        delay: float = 0.0,
    ) -> None:
        self.responder = responder
        self.chunk_size = chunk_size
        self.delay = delay
        self.calls: List[CompletionRequest] = []
        self.active = 0
        self.max_active = 0

    def _enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)

    def _exit(self) -> None:
        self.active -= 1

    async def complete(self, request: CompletionRequest) -> str:
        self.calls.append(request)
        self._enter()
        try:
            await asyncio.sleep(self.delay)
            result = self.responder(request)
            if isinstance(result, BaseException):
                raise result
            if isinstance(result, list):
                return "".join(result)
            return result
        finally:
            self._exit()

    async def stream(self, request: CompletionRequest):
        self.calls.append(request)
        self._enter()
        try:
            result = self.responder(request)
            if isinstance(result, BaseException):
                await asyncio.sleep(self.delay)
                raise result
            if isinstance(result, str):
                chunks: list = [result[i:i + self.chunk_size] for i in range(0, len(result), self.chunk_size)]
            else:
                chunks = result
            for chunk in chunks:
                await asyncio.sleep(self.delay)
                if isinstance(chunk, BaseException):
                    raise chunk
                yield chunk
        finally:
            self._exit()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def engine_config(tmp_path: Path) -> EngineConfig:
    """Defaults with instant retries and state kept under tmp_path."""
    return EngineConfig(
        retry_base_delay=0.0,
        state_dir=tmp_path / "state",
        output_dir=tmp_path / "out",
    )


@pytest.fixture
def sample_config(tmp_path: Path) -> dict:
    """
    Write a small configuration file for tests and return metadata.
    """
    state_dir = tmp_path / "state"
    output_dir = tmp_path / "out"
    config_text = textwrap.dedent(
        f"""
        llm = "gpt-4o-mini"
        variant_count = 3
        batch_width = 3
        retry_base_delay = 0.0
        state_dir = "{state_dir}"
        output_dir = "{output_dir}"

        [brand_kit]
        name = "Roastery"
        primary_color = "#3b2416"
        secondary_color = "#f4e9dc"
        accent_color = "#c8702a"
        font_family = "Fraunces"
        """
    ).strip()
    path = tmp_path / "config.toml"
    path.write_text(config_text + "\n", encoding="utf-8")
    return {"path": path, "state_dir": state_dir, "output_dir": output_dir}
