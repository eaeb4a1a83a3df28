from ops_pilot.backends import BackendSelector, OpenAIReasoningBackend, SimulatedReasoningBackend
from support import make_settings


def test_no_key_selects_simulation() -> None:
    selection = BackendSelector(make_settings()).select()

    assert selection.mode == "simulation"
    assert isinstance(selection.backend, SimulatedReasoningBackend)
    assert selection.reason == "no API key configured"


def test_environment_key_selects_live(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    selector = BackendSelector(make_settings())

    selection = selector.select()

    assert selection.mode == "live"
    assert isinstance(selection.backend, OpenAIReasoningBackend)
    assert selection.backend.api_key == "sk-env"
    assert selector.describe() == ("live", "environment")


def test_user_key_takes_precedence() -> None:
    selector = BackendSelector(make_settings(openai_api_key="sk-settings"))
    selector.set_user_api_key("  sk-user  ")

    selection = selector.select()

    assert selection.backend.api_key == "sk-user"
    assert selector.credential() == ("sk-user", "user")

    selector.set_user_api_key(None)
    assert selector.credential() == ("sk-settings", "environment")


def test_unsupported_provider_falls_back_to_simulation() -> None:
    selector = BackendSelector(make_settings(openai_api_key="sk-x", llm_provider="anthropic"))

    selection = selector.select()

    assert selection.mode == "simulation"
    assert "unsupported" in selection.reason
    assert selector.describe() == ("simulation", "environment")


def test_selection_is_made_per_call() -> None:
    selector = BackendSelector(make_settings())
    assert selector.select().mode == "simulation"

    selector.set_user_api_key("sk-late")
    assert selector.select().mode == "live"
