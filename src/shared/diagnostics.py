"""
Diagnostic utilities.

Resource snapshots logged around the memory-heavy steps of an export
(tile download and mosaic assembly).
"""

import logging
from typing import Any

import psutil

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage in megabytes."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / _MB, 2),
            'process_vms_mb': round(memory_info.vms / _MB, 2),
            'system_total_mb': round(system_memory.total / _MB, 2),
            'system_available_mb': round(system_memory.available / _MB, 2),
            'system_used_percent': system_memory.percent,
        }
    except (psutil.Error, OSError) as e:
        return {'error': f'Failed to get memory info: {e}'}


def estimate_canvas_mb(width_px: int, height_px: int, bands: int = 4) -> float:
    """Memory footprint of an RGBA canvas of the given size."""
    return round(max(0, width_px) * max(0, height_px) * bands / _MB, 2)


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )

