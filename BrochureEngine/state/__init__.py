"""Brochure Engine state module.

Export the project model shared by the session, storage and the Flask interface."""

from .project import Page, Project, ProjectMetadata, Template, TemplateCopy

__all__ = ["Page", "Project", "ProjectMetadata", "Template", "TemplateCopy"]
