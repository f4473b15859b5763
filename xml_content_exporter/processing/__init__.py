"""Export orchestration components."""

from .content_exporter import XMLContentExporter

__all__ = ['XMLContentExporter']
