from __future__ import annotations

import logging
from typing import Mapping

from frametext.ocr.registry import (
    FALLBACK_PROVIDER_ID,
    PRIORITY_ORDER,
    ProviderDescriptor,
    ProviderKind,
)

logger = logging.getLogger(__name__)


def priority_order(providers: Mapping[str, ProviderDescriptor]) -> list[str]:
    """Fixed total order: built-ins as declared, customs by id, free tier last."""
    builtins = [pid for pid in PRIORITY_ORDER if pid != FALLBACK_PROVIDER_ID]
    customs = sorted(
        pid for pid, d in providers.items() if d.kind is ProviderKind.CUSTOM
    )
    return builtins + customs + [FALLBACK_PROVIDER_ID]


def select_provider(
    providers: Mapping[str, ProviderDescriptor],
    has_math_content: bool = False,
) -> ProviderDescriptor | None:
    """Return the provider to call, or None when nothing usable is configured.

    Math content short-circuits to a usable math-specialized provider regardless
    of what else is enabled.
    """
    if has_math_content:
        for descriptor in providers.values():
            if descriptor.kind is ProviderKind.DUAL_CREDENTIAL and descriptor.usable:
                logger.info("provider_selected_math", extra={"provider": descriptor.provider_id})
                return descriptor

    for provider_id in priority_order(providers):
        descriptor = providers.get(provider_id)
        if descriptor is not None and descriptor.usable:
            logger.info("provider_selected", extra={"provider": provider_id})
            return descriptor

    logger.info("no_provider_selected", extra={"configured": sorted(providers)})
    return None
