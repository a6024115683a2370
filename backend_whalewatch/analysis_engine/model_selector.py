"""
Model tier selection.

Transactions at or above the configured BTC threshold get the more capable
(and more expensive) tier; smaller ones the fast tier. An explicit caller
preference always wins over the size rule.
"""

from __future__ import annotations

from backend_whalewatch.config.settings import MODEL_FLASH, MODEL_PRO, Settings, TierParams

PREFERENCE_FLASH = "flash"
PREFERENCE_PRO = "pro"
VALID_PREFERENCES = (PREFERENCE_FLASH, PREFERENCE_PRO)


def select_model(amount_btc: float, preference: str | None, settings: Settings) -> str:
    if preference == PREFERENCE_PRO:
        return MODEL_PRO
    if preference == PREFERENCE_FLASH:
        return MODEL_FLASH
    if amount_btc >= settings.pro_threshold_btc:
        return MODEL_PRO
    return MODEL_FLASH


def get_tier_params(model: str, settings: Settings) -> TierParams:
    return settings.pro_params if model == MODEL_PRO else settings.flash_params
