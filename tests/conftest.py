"""Shared fixtures: isolated settings and a fresh hierarchy manager."""
from __future__ import annotations

import pytest

import debug_trace
from hierarchy import HierarchyManager
from models import LayoutType, ReferenceImage
from settings import SettingsManager, set_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path):
    """Point the settings singleton at an empty temp directory."""
    sm = SettingsManager(settings_dir=tmp_path / "config")
    set_settings(sm)
    debug_trace.enable_trace(False)
    yield sm
    set_settings(None)


@pytest.fixture()
def manager():
    """Manager for an 800x600 reference image."""
    return HierarchyManager(image=ReferenceImage(name="screen.png", width=800, height=600))


@pytest.fixture()
def make_container(manager):
    """Factory adding a root annotation that is already a layout container."""
    def _make(x, y, w, h, layout=LayoutType.BOX):
        ann = manager.add(x, y, w, h)
        assert manager.update_field(ann.id, "layoutType", layout)
        return ann
    return _make
