"""Brochure Engine configuration module uniformly reads environment variables and provides type-safe access."""

from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Calculate .env priority: the current working directory first, followed by the project root directory
PROJECT_ROOT: Path = Path(__file__).resolve().parents[2]
CWD_ENV: Path = Path.cwd() / ".env"
ENV_FILE: str = str(CWD_ENV if CWD_ENV.exists() else (PROJECT_ROOT / ".env"))

DEFAULT_FONT_LINKS = [
    "https://fonts.googleapis.com/css2?family=Lora:wght@400;500;600;700"
    "&family=Source+Sans+3:wght@300;400;500;600;700&display=swap",
]


class Settings(BaseSettings):
    """Brochure Engine configuration; every field can be overridden from .env or the environment."""

    # ====================== Folder layout ======================
    BROCHURE_BASE_PATH: str = Field(".", description="Root folder holding Templates/, Projects/ and Exports/")
    TEMPLATES_DIR: str = Field("Templates", description="Template library folder, relative to the base path")
    PROJECTS_DIR: str = Field("Projects", description="Project (.3bt) folder, relative to the base path")
    EXPORTS_DIR: str = Field("Exports", description="Export folder, relative to the base path")
    PROJECT_EXTENSION: str = Field(".3bt", description="Project file extension")

    # ====================== Rendering ======================
    PAGE_WIDTH: str = Field("210mm", description="Composed page width (A4)")
    PAGE_HEIGHT: str = Field("297mm", description="Composed page height (A4)")
    DOCUMENT_LANG: str = Field("en", description="lang attribute of composed documents")
    FONT_LINKS: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FONT_LINKS),
        description="Web font stylesheets linked from every preview/export document",
    )
    EXPORT_PAGE_NUMBERS: bool = Field(
        False, description="Emit the print-only page number badge in export documents"
    )

    # ====================== Persistence ======================
    AUTO_SAVE_ENABLED: bool = Field(True, description="Whether to debounce-save the project after edits")
    AUTO_SAVE_DELAY: float = Field(30.0, description="Auto-save debounce delay (seconds)")

    # ====================== Export ======================
    ENABLE_PDF_EXPORT: bool = Field(True, description="Whether to allow PDF export")
    KEEP_EXPORT_HTML: bool = Field(True, description="Store the exact HTML handed to the PDF engine next to the PDF")

    # ====================== Service ======================
    HOST: str = Field("127.0.0.1", description="Flask host address")
    PORT: int = Field(5050, description="Flask server port")
    LOG_FILE: str = Field("logs/brochure.log", description="Log output file")
    LOG_LEVEL: str = Field("INFO", description="Minimum log level for the file sink")
    SECRET_KEY: Optional[str] = Field(None, description="Flask secret key")

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_prefix="",
        case_sensitive=False,
        extra="allow",
    )

    @field_validator("AUTO_SAVE_DELAY")
    @classmethod
    def _check_auto_save_delay(cls, value: float) -> float:
        """Auto-save delay must stay between 1 second and 5 minutes."""
        if value < 1 or value > 300:
            raise ValueError("AUTO_SAVE_DELAY must be between 1 and 300 seconds")
        return value

    @property
    def base_path(self) -> Path:
        return Path(self.BROCHURE_BASE_PATH).expanduser()

    @property
    def templates_path(self) -> Path:
        return self.base_path / self.TEMPLATES_DIR

    @property
    def projects_path(self) -> Path:
        return self.base_path / self.PROJECTS_DIR

    @property
    def exports_path(self) -> Path:
        return self.base_path / self.EXPORTS_DIR


settings = Settings()


def print_config(config: Settings):
    """Output the current configuration items to the log in human-readable format to facilitate troubleshooting.

    Parameters:
        config: Settings instance, usually global settings."""
    message = ""
    message += "\n=== Brochure Engine Configuration ===\n"
    message += f"Base path: {config.base_path}\n"
    message += f"Template directory: {config.templates_path}\n"
    message += f"Project directory: {config.projects_path}\n"
    message += f"Export directory: {config.exports_path}\n"
    message += f"Page size: {config.PAGE_WIDTH} x {config.PAGE_HEIGHT}\n"
    message += f"Font links: {len(config.FONT_LINKS)}\n"
    message += f"Export page numbers: {config.EXPORT_PAGE_NUMBERS}\n"
    message += f"Auto-save: {config.AUTO_SAVE_ENABLED} (delay {config.AUTO_SAVE_DELAY} seconds)\n"
    message += f"PDF export: {config.ENABLE_PDF_EXPORT}\n"
    message += f"Log file: {config.LOG_FILE}\n"
    message += "=========================\n"
    logger.info(message)
