"""Provider selector tests."""
from __future__ import annotations

from frametext.ocr.registry import (
    AZURE,
    GOOGLE,
    MATHPIX,
    OCR_SPACE,
    CustomApiConfig,
    ProviderDescriptor,
    ProviderKind,
)
from frametext.ocr.selector import priority_order, select_provider


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _azure(enabled: bool = True, api_key: str = "az-key", endpoint: str = "https://az.example") -> ProviderDescriptor:
    return ProviderDescriptor(AZURE, ProviderKind.CLOUD_VISION_ASYNC, enabled, api_key=api_key, endpoint=endpoint)


def _google(enabled: bool = True, api_key: str = "g-key") -> ProviderDescriptor:
    return ProviderDescriptor(GOOGLE, ProviderKind.KEY_JSON, enabled, api_key=api_key)


def _mathpix(enabled: bool = True, app_id: str = "id", app_key: str = "key") -> ProviderDescriptor:
    return ProviderDescriptor(MATHPIX, ProviderKind.DUAL_CREDENTIAL, enabled, app_id=app_id, app_key=app_key)


def _ocr_space(enabled: bool = True) -> ProviderDescriptor:
    return ProviderDescriptor(OCR_SPACE, ProviderKind.FREE_TIER, enabled)


def _snapshot(*descriptors: ProviderDescriptor) -> dict[str, ProviderDescriptor]:
    return {d.provider_id: d for d in descriptors}


# ---------------------------------------------------------------------------
# Priority order
# ---------------------------------------------------------------------------

def test_highest_priority_usable_provider_wins() -> None:
    providers = _snapshot(_azure(), _google(), _mathpix(), _ocr_space())
    assert select_provider(providers).provider_id == AZURE


def test_only_second_and_third_usable_returns_second() -> None:
    providers = _snapshot(_azure(enabled=False), _google(), _mathpix(), _ocr_space(enabled=False))
    assert select_provider(providers).provider_id == GOOGLE


def test_enabled_without_credentials_is_skipped() -> None:
    providers = _snapshot(_azure(endpoint=""), _google(api_key=""), _mathpix(app_key=""), _ocr_space())
    assert select_provider(providers).provider_id == OCR_SPACE


def test_free_tier_needs_no_credentials() -> None:
    assert select_provider(_snapshot(_ocr_space())).provider_id == OCR_SPACE


def test_nothing_usable_returns_none() -> None:
    providers = _snapshot(_azure(enabled=False), _google(enabled=False), _ocr_space(enabled=False))
    assert select_provider(providers) is None
    assert select_provider({}) is None


def test_custom_providers_sit_between_builtins_and_free_tier() -> None:
    custom = ProviderDescriptor(
        "custom_zai",
        ProviderKind.CUSTOM,
        True,
        api_key="k",
        custom=CustomApiConfig(url="https://api.zai.ai/v1/ocr", api_key="k"),
    )
    providers = _snapshot(_google(enabled=False), custom, _ocr_space())
    assert priority_order(providers) == [AZURE, GOOGLE, MATHPIX, "custom_zai", OCR_SPACE]
    assert select_provider(providers).provider_id == "custom_zai"


# ---------------------------------------------------------------------------
# Math short-circuit
# ---------------------------------------------------------------------------

def test_math_hint_prefers_math_provider_over_higher_priority() -> None:
    providers = _snapshot(_azure(), _google(), _mathpix(), _ocr_space())
    assert select_provider(providers, has_math_content=True).provider_id == MATHPIX


def test_math_hint_ignored_when_math_provider_not_fully_credentialed() -> None:
    providers = _snapshot(_azure(), _mathpix(app_key=""))
    assert select_provider(providers, has_math_content=True).provider_id == AZURE


def test_math_hint_ignored_when_math_provider_disabled() -> None:
    providers = _snapshot(_google(), _mathpix(enabled=False))
    assert select_provider(providers, has_math_content=True).provider_id == GOOGLE


def test_math_provider_without_hint_keeps_its_rank() -> None:
    providers = _snapshot(_google(), _mathpix())
    assert select_provider(providers, has_math_content=False).provider_id == GOOGLE
