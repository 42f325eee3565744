"""Event and conversion intake feeding the forwarding queue."""

from __future__ import annotations

from .service import ConversionReceipt, IngestionService, TrackReceipt

__all__ = ["ConversionReceipt", "IngestionService", "TrackReceipt"]
