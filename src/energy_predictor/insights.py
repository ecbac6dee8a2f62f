"""AI-generated usage tips and scenario comparisons via the Gemini API.

The response text is passed through untouched; only transport and status
failures are interpreted.
"""

import logging
import os
from typing import Any

import httpx
from dotenv import load_dotenv

from .models import FixedRates, ProjectionConfig, ProjectionResult, Session, TariffBand
from .projection import InvalidInputError
from .store import KeyValueStore

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 60.0

API_KEY_STORE_KEY = "geminiApiKey"


class InsightsError(Exception):
    """Base exception for AI insight failures."""
    pass


class InvalidApiKeyError(InsightsError):
    """The AI service rejected the API key."""
    pass


class InsightsRequestError(InsightsError):
    """The AI request failed or returned something unusable."""
    pass


def get_api_key(store: KeyValueStore | None = None) -> str | None:
    """Get the Gemini API key from the environment, then from the store."""
    load_dotenv()
    key = os.environ.get("GEMINI_API_KEY")
    if key:
        return key
    if store is not None:
        return store.load(API_KEY_STORE_KEY)
    return None


def save_api_key(store: KeyValueStore, api_key: str) -> None:
    if not api_key or not api_key.strip():
        raise InvalidInputError("Please enter a valid API key.")
    store.save(API_KEY_STORE_KEY, api_key.strip())


def remove_api_key(store: KeyValueStore) -> None:
    store.save(API_KEY_STORE_KEY, None)


def _format_values(values) -> str:
    return ", ".join(f"{v:g}" for v in values)


def _describe_rates(rates: FixedRates | TariffBand) -> str:
    return (
        f"Peak {rates.peak_unit_rate:g}p/kWh, Off-Peak {rates.off_peak_unit_rate:g}p/kWh, "
        f"Standing Charge {rates.standing_charge:g}p/day"
    )


def describe_tariff(config: ProjectionConfig) -> str:
    """Describe the rates a projection used, for inclusion in prompts."""
    if config.is_fixed_charge:
        return f"Fixed Rates: {_describe_rates(config.fixed_rates)}"

    lines = ["Tariff Quarters:"]
    for band in config.derived_bands:
        lines.append(f"- {band.name}: {_describe_rates(band)}")
    return "\n".join(lines)


def build_usage_tips_prompt(config: ProjectionConfig, result: ProjectionResult) -> str:
    """Prompt asking for cost-saving tips on a single projection."""
    return f"""You are an expert energy advisor. Analyze the following projected monthly electricity usage (kWh) and the percentage of usage that falls into peak hours. Provide actionable, concise, and helpful tips for reducing overall cost, specifically highlighting months or periods where shifting usage might be beneficial, and suggest general energy-saving practices.

Projected Monthly Usage (kWh): {_format_values(result.monthly_usage)}
Projected Monthly Cost (£): {", ".join(f"{c:.2f}" for c in result.monthly_cost)}
Total Projected Cost: £{result.total_cost:.2f}
Peak Usage Percentage: {config.peak_percentage}%
{describe_tariff(config)}

Focus on practical advice given the peak/off-peak split and tariff differences. Keep the tips concise, ideally as bullet points or short paragraphs."""


def _describe_scenario(number: int, session: Session) -> str:
    return f"""Scenario {number} Name: {session.name}
Scenario {number} Total Projected Cost: £{session.result.total_cost:.2f}
Scenario {number} Monthly Usage (kWh): {_format_values(session.result.monthly_usage)}
Scenario {number} Peak Usage Percentage: {session.config.peak_percentage}%
Scenario {number} {describe_tariff(session.config)}"""


def build_comparison_prompt(first: Session, second: Session) -> str:
    """Prompt asking for a comparison of two saved scenarios."""
    return f"""You are an expert energy analyst. Two energy usage projection scenarios are provided. Analyze their key differences in total projected cost, monthly usage patterns, and the impact of their respective tariff bands. Provide a concise summary, highlighting which scenario is more cost-effective and why, and any significant differences in usage or tariff structures that contribute to the cost difference.

{_describe_scenario(1, first)}

{_describe_scenario(2, second)}

Provide your analysis in clear, easy-to-understand language. Focus on the most impactful differences."""


def _extract_text(data: Any) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise InsightsRequestError("AI did not return a usable response") from e


def generate_text(
    prompt: str,
    api_key: str,
    client: httpx.Client | None = None,
    model: str = DEFAULT_MODEL,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Send a prompt to Gemini and return the generated text.

    Raises:
        InvalidApiKeyError: the service answered 401 or 403
        InsightsRequestError: any other failure
    """
    url = GEMINI_API_URL.format(model=model)
    payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    owns_client = client is None
    if client is None:
        client = httpx.Client()

    try:
        response = client.post(url, params={"key": api_key}, json=payload, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.warning("Gemini request failed with status %s", status)
        if status in (401, 403):
            raise InvalidApiKeyError(
                "Invalid API key. Please check your Gemini API key and try again."
            ) from e
        raise InsightsRequestError(f"API request failed: {status} {e.response.reason_phrase}") from e
    except httpx.HTTPError as e:
        logger.warning("Gemini request failed: %s", e)
        raise InsightsRequestError(f"Could not reach the AI service: {e}") from e
    except ValueError as e:
        raise InsightsRequestError("AI service returned a response that is not JSON") from e
    finally:
        if owns_client:
            client.close()

    return _extract_text(data)


def get_usage_tips(
    config: ProjectionConfig,
    result: ProjectionResult,
    api_key: str,
    client: httpx.Client | None = None,
) -> str:
    """Ask the AI service for tips on reducing a projection's cost."""
    if not result.ok:
        raise InvalidInputError(result.error)
    return generate_text(build_usage_tips_prompt(config, result), api_key, client=client)


def get_comparison_summary(
    first: Session,
    second: Session,
    api_key: str,
    client: httpx.Client | None = None,
) -> str:
    """Ask the AI service to compare two saved sessions."""
    return generate_text(build_comparison_prompt(first, second), api_key, client=client)
