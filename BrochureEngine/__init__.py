"""Brochure Engine.

Composes multi-page brochures from reusable HTML templates. Edits are stored as overlays keyed by
CSS selector and applied to the untouched template source at render time; multi-page exports
scope every page's CSS so templates never style each other."""

from .core.project_session import ProjectSession, create_session

__version__ = "1.0.0"
__author__ = "Brochure Engine Team"

__all__ = ["ProjectSession", "create_session"]
