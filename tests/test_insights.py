"""Tests for the Gemini insights client."""

import json
from unittest.mock import patch

import httpx
import pytest

from energy_predictor import insights
from energy_predictor.models import FixedRates, TariffBand
from energy_predictor.projection import InvalidInputError, build_config, project
from energy_predictor.sessions import create_session
from energy_predictor.store import KeyValueStore

FIXED = FixedRates(peak_unit_rate=25.0, off_peak_unit_rate=12.0, standing_charge=50.0)
BAND = TariffBand("Current Month", peak_unit_rate=27.0, off_peak_unit_rate=15.0, standing_charge=55.0)

GOOD_RESPONSE = {"candidates": [{"content": {"parts": [{"text": "- Run the dishwasher overnight"}]}}]}


def make_config(fixed=False, usage="200, 180"):
    return build_config(usage, 70, 3, 7, BAND, FIXED, is_fixed_charge=fixed)


def mock_client(status_code=200, body=None, content=None, requests=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=body if body is not None else GOOD_RESPONSE)

    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("energy_predictor.insights.load_dotenv"):
        yield


def test_generate_text_success():
    requests = []
    text = insights.generate_text("Hello", "test-key", client=mock_client(requests=requests))

    assert text == "- Run the dishwasher overnight"
    request = requests[0]
    assert request.url.params["key"] == "test-key"
    assert "gemini-2.0-flash:generateContent" in request.url.path
    payload = json.loads(request.content)
    assert payload["contents"][0]["parts"][0]["text"] == "Hello"


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_failure_is_invalid_key(status_code):
    with pytest.raises(insights.InvalidApiKeyError, match="Invalid API key"):
        insights.generate_text("Hello", "bad-key", client=mock_client(status_code, body={"error": {}}))


def test_server_error_is_request_error():
    with pytest.raises(insights.InsightsRequestError, match="500"):
        insights.generate_text("Hello", "test-key", client=mock_client(500, body={"error": {}}))


def test_malformed_body_is_request_error():
    with pytest.raises(insights.InsightsRequestError, match="usable response"):
        insights.generate_text("Hello", "test-key", client=mock_client(body={"candidates": []}))


def test_non_json_body_is_request_error():
    with pytest.raises(insights.InsightsRequestError, match="not JSON"):
        insights.generate_text("Hello", "test-key", client=mock_client(content=b"<html>oops</html>"))


def test_network_error_is_request_error():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(insights.InsightsRequestError, match="Could not reach"):
        insights.generate_text("Hello", "test-key", client=client)


def test_usage_tips_prompt_variable_tariff():
    config = make_config()
    prompt = insights.build_usage_tips_prompt(config, project(config))

    assert "Projected Monthly Usage (kWh): 200, 180, 200" in prompt
    assert "Peak Usage Percentage: 70%" in prompt
    assert "- Next Quarter: Peak 30.25p/kWh" in prompt


def test_usage_tips_prompt_fixed_tariff():
    config = make_config(fixed=True)
    prompt = insights.build_usage_tips_prompt(config, project(config))

    assert "Fixed Rates: Peak 25p/kWh, Off-Peak 12p/kWh, Standing Charge 50p/day" in prompt
    assert "Tariff Quarters" not in prompt


def test_comparison_prompt_names_both_scenarios():
    a_config = make_config()
    b_config = make_config(fixed=True, usage="300")
    a = create_session("Variable", a_config, project(a_config))
    b = create_session("Fixed", b_config, project(b_config))

    prompt = insights.build_comparison_prompt(a, b)

    assert "Scenario 1 Name: Variable" in prompt
    assert "Scenario 2 Name: Fixed" in prompt
    assert f"Scenario 2 Total Projected Cost: £{b.result.total_cost:.2f}" in prompt


def test_usage_tips_refuses_failed_projection():
    config = make_config(usage="none")
    with pytest.raises(InvalidInputError):
        insights.get_usage_tips(config, project(config), "test-key", client=mock_client())


def test_api_key_prefers_environment(tmp_path, monkeypatch):
    store = KeyValueStore(tmp_path / "test.db")
    insights.save_api_key(store, "stored-key")

    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    assert insights.get_api_key(store) == "env-key"

    monkeypatch.delenv("GEMINI_API_KEY")
    assert insights.get_api_key(store) == "stored-key"

    insights.remove_api_key(store)
    assert insights.get_api_key(store) is None


def test_blank_api_key_rejected(tmp_path):
    with pytest.raises(InvalidInputError):
        insights.save_api_key(KeyValueStore(tmp_path / "test.db"), "  ")
