"""Shared pytest fixtures for Qt application lifecycle."""

import os
import sys
from datetime import datetime, timedelta, timezone

# Headless test runs have no display; use Qt's offscreen platform plugin.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QCoreApplication, QSettings
from PySide6.QtGui import QGuiApplication

from proofmark.settings import AnnotationSettings


@pytest.fixture(scope="session")
def app():
    """Provide a single QGuiApplication for all tests."""
    instance = QGuiApplication.instance()
    if instance is None:
        instance = QGuiApplication(sys.argv)

    yield instance

    QCoreApplication.processEvents()


@pytest.fixture
def settings(tmp_path):
    """Annotation settings backed by a throwaway ini file."""
    qsettings = QSettings(str(tmp_path / "proofmark.ini"), QSettings.Format.IniFormat)
    return AnnotationSettings(qsettings)


@pytest.fixture
def clock():
    """Deterministic clock: each call is one minute after the previous one."""
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    ticks = iter(range(10_000))

    def tick():
        return start + timedelta(minutes=next(ticks))

    return tick
