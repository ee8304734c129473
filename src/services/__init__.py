"""Service layer: export orchestration and delivery."""
from services.delivery import (
    DeliveryResult,
    FileDelivery,
    PngResponseDelivery,
    export_filename,
)
from services.export_service import (
    ExportEstimate,
    ExportOrchestrator,
    ExportResult,
    ExportState,
    OrchestratorContext,
)

__all__ = [
    'DeliveryResult',
    'ExportEstimate',
    'ExportOrchestrator',
    'ExportResult',
    'ExportState',
    'FileDelivery',
    'OrchestratorContext',
    'PngResponseDelivery',
    'export_filename',
]
