"""Tests for shared.diagnostics helpers."""

import logging
from unittest.mock import patch

import psutil

import shared.diagnostics as diagnostics


def test_get_memory_info_direct():
    info = diagnostics.get_memory_info()
    assert 'process_rss_mb' in info
    assert info['system_total_mb'] > 0


def test_get_memory_info_error():
    with patch('shared.diagnostics.psutil.Process', side_effect=psutil.AccessDenied()):
        info = diagnostics.get_memory_info()
    assert 'error' in info


def test_estimate_canvas_mb():
    assert diagnostics.estimate_canvas_mb(1024, 1024) == 4.0
    assert diagnostics.estimate_canvas_mb(1024, 1024, bands=3) == 3.0
    assert diagnostics.estimate_canvas_mb(-5, 100) == 0.0


def test_log_memory_usage(caplog):
    with caplog.at_level(logging.INFO, logger='shared.diagnostics'):
        diagnostics.log_memory_usage('after mosaic assembly')
    assert 'Memory usage (after mosaic assembly)' in caplog.text
