"""Integration tests for the CLI entry point with a scripted engine."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from surviveai.cli import main as cli_main
from surviveai.models.device_context import DeviceContext
from tests.fakes import FakeEngine, completion

pytestmark = pytest.mark.integration

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ANSWER = (
    "Boil the water for one minute at a rolling boil. If you have a filter, "
    "use it first, then boil. Purification tablets also work."
)


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Run from the project root with a scratch database and clean logging state."""
    monkeypatch.chdir(PROJECT_ROOT)
    monkeypatch.setenv("ACTIVE_MODEL", "qwen3:0.6b")
    monkeypatch.setenv("SURVIVEAI_DB_PATH", str(tmp_path / "chat.db"))
    monkeypatch.setenv("USE_CACHED_ANSWERS", "false")
    for name in ("RESPONSE_TIMEOUT", "KNOWLEDGE_DATA_DIR", "KNOWLEDGE_SEARCH_LIMIT"):
        monkeypatch.delenv(name, raising=False)

    # setup_logging reconfigures the root logger
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    package_logger = logging.getLogger("surviveai")
    saved_package_level = package_logger.level
    yield monkeypatch
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    package_logger.setLevel(saved_package_level)


@pytest.fixture
def engines(cli_env):
    """Swap the Ollama provider for FakeEngines; returns (settings, created engines)."""
    created = []
    settings = {"script": [], "delay": 0.0}

    def fake_provider(model_config, base_url=None):
        engine = FakeEngine(list(settings["script"]), model_config=model_config, delay=settings["delay"])
        created.append(engine)
        return engine

    cli_env.setattr(cli_main, "OllamaProvider", fake_provider)
    return settings, created


def parse(*argv):
    return cli_main.build_parser().parse_args(list(argv))


@pytest.mark.asyncio
async def test_ask_prints_answer(engines, capsys):
    settings, created = engines
    settings["script"] = [completion(ANSWER)]

    code = await cli_main.main(parse("--ask", "How do I purify water?"))

    assert code == 0
    out = capsys.readouterr().out
    assert ANSWER in out
    assert "knowledge-grounded" in out
    assert not created[0].is_initialized


@pytest.mark.asyncio
async def test_ask_timeout_exits_cleanly(cli_env, engines, capsys):
    settings, created = engines
    settings["script"] = [completion(ANSWER)]
    settings["delay"] = 0.5
    cli_env.setenv("RESPONSE_TIMEOUT", "0.05")

    code = await cli_main.main(parse("--ask", "How do I purify water?"))

    assert code == 1
    assert "timed out" in capsys.readouterr().err.lower()
    # close() waited for the abandoned generation, then released the model
    assert not created[0].is_initialized


@pytest.mark.asyncio
async def test_close_skips_release_when_generation_outlives_drain(cli_env, engines):
    settings, created = engines
    settings["script"] = [completion(ANSWER)]
    settings["delay"] = 0.5
    cli_env.setenv("RESPONSE_TIMEOUT", "0.05")
    cli_env.setattr(cli_main, "RELEASE_DRAIN_SECONDS", 0.0)

    code = await cli_main.main(parse("--ask", "How do I purify water?"))

    assert code == 1
    assert created[0].is_initialized
    # Let the abandoned generation finish before the loop closes
    await asyncio.sleep(0.6)


def test_search_shows_detected_topics(cli_env, capsys):
    cli = cli_main.CLI()

    cli.search("I see a bear and need a splint")

    assert capsys.readouterr().out.startswith("Topics: first-aid, food\n")


@pytest.mark.asyncio
async def test_each_turn_gets_current_time(engines):
    settings, created = engines
    settings["script"] = [completion(ANSWER), completion(ANSWER)]
    startup = datetime(2024, 7, 1, 6, 0, tzinfo=timezone(timedelta(hours=-6), "STARTUP"))
    cli = cli_main.CLI(context=DeviceContext.capture(latitude=46.5, longitude=-121.75, now=startup))
    await cli.load_model()
    try:
        await cli.ask("How do I purify water?")
        await cli.ask("And after that?")
    finally:
        await cli.close()

    assert len(created[0].calls) == 2
    for call in created[0].calls:
        system = call["messages"][0]["content"]
        assert "46.5000°, -121.7500°" in system
        assert "STARTUP" not in system
