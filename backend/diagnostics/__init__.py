"""Diagnostics layer - passive, log-only feed consumers"""

from .monitor import DiagnosticsMonitor

__all__ = ['DiagnosticsMonitor']
