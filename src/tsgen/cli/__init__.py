"""Command-line interface for tsgen."""

from __future__ import annotations
