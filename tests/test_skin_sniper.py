from __future__ import annotations

from unittest.mock import patch

import pytest

import skin_sniper
from skin_sniper import build_scheduler


def test_build_scheduler(settings):
    scheduler = build_scheduler(settings)

    assert scheduler.store.database == settings.database
    assert settings.database.exists()
    assert scheduler.interval_minutes == settings.check_interval_minutes
    assert scheduler.price_provider.active_order() == ["steam"]
    assert scheduler.image_lookup.__self__ is scheduler.price_provider.providers["steam"]


def test_main_stops_on_keyboard_interrupt():
    with patch.object(skin_sniper, "skin_sniper", side_effect=KeyboardInterrupt):
        skin_sniper.main()


def test_main_reraises_fatal_errors():
    with patch.object(skin_sniper, "skin_sniper", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError, match="boom"):
            skin_sniper.main()
