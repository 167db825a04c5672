"""Detect system dependencies tools
Used to detect the native libraries WeasyPrint needs before brochures can be exported to PDF"""
import os
import sys
import platform
from pathlib import Path
from loguru import logger
from ctypes import util as ctypes_util

BOX_CONTENT_WIDTH = 62


def _box_line(text: str = "") -> str:
    """Render a single line inside the 66-char help box."""
    return f"║  {text:<{BOX_CONTENT_WIDTH}}║\n"


def _get_platform_specific_instructions():
    """Get installation instructions for your current platform

    Returns:
        str: Platform-specific installation instructions"""
    system = platform.system()

    def _box_lines(lines):
        return "".join(_box_line(line) for line in lines)

    if system == "Darwin":
        return _box_lines(
            [
                "macOS:",
                "  brew install pango gdk-pixbuf libffi",
                "  export DYLD_LIBRARY_PATH=/opt/homebrew/lib:$DYLD_LIBRARY_PATH",
                "  (Intel Macs use /usr/local/lib)",
                "",
                "Verify in a new terminal:",
                "  python -m BrochureEngine.utils.dependency_check",
            ]
        )
    elif system == "Linux":
        return _box_lines(
            [
                "Ubuntu/Debian:",
                "  sudo apt-get install -y libpango-1.0-0 libpangoft2-1.0-0 \\",
                "    libcairo2 libgdk-pixbuf-2.0-0 libffi-dev",
                "",
                "CentOS/RHEL:",
                "  sudo yum install -y pango gdk-pixbuf2 libffi-devel cairo",
            ]
        )
    elif system == "Windows":
        return _box_lines(
            [
                "Windows:",
                "  Install the GTK3 runtime, then add its bin folder to PATH",
                "  or point GTK_BIN_PATH at it.",
                "",
                "Verify in a new terminal:",
                "  python -m BrochureEngine.utils.dependency_check",
            ]
        )
    return _box_lines(["See the WeasyPrint installation guide for your platform"])


def _windows_gtk_candidates():
    """Yield the folders that may hold the GTK/Pango DLLs on Windows."""
    for env_var in ("GTK3_RUNTIME_PATH", "GTK_RUNTIME_PATH", "GTK_BIN_PATH", "GTK_PATH"):
        value = os.environ.get(env_var)
        if value:
            yield Path(value)
            yield Path(value) / "bin"

    for root in (os.environ.get("ProgramFiles", r"C:\Program Files"),
                 os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")):
        root_path = Path(root)
        if root_path.exists():
            for child in root_path.glob("GTK*"):
                yield child / "bin"

    for entry in os.environ.get("PATH", "").split(os.pathsep):
        if entry and ("gtk" in entry.lower() or "pango" in entry.lower()):
            yield Path(entry)


def prepare_pango_environment():
    """Extend the native library search path before WeasyPrint is imported.

    Returns:
        str | None: the path that was added, None when nothing changed"""
    system = platform.system()
    if system == "Windows":
        for path in _windows_gtk_candidates():
            if not path.exists() or not any(path.glob("pango*-1.0-*.dll")):
                continue
            if hasattr(os, "add_dll_directory"):
                try:
                    os.add_dll_directory(str(path))
                except OSError as exc:
                    logger.debug(f"add_dll_directory failed for {path}: {exc}")
            current_path = os.environ.get("PATH", "")
            if str(path) not in current_path.split(";"):
                os.environ["PATH"] = f"{path};{current_path}"
            return str(path)
        return None

    if system == "Darwin":
        candidates = [Path("/opt/homebrew/lib"), Path("/usr/local/lib")]
        current = os.environ.get("DYLD_LIBRARY_PATH", "")
        added = [str(c) for c in candidates if c.exists() and str(c) not in current.split(":")]
        if added:
            os.environ["DYLD_LIBRARY_PATH"] = ":".join(added + ([current] if current else []))
            return os.environ["DYLD_LIBRARY_PATH"]
    return None


def _probe_native_libs():
    """Use ctypes to find key native libraries to help locate missing components.

    Returns:
        list[str]: library identifier not found"""
    if platform.system() == "Windows":
        targets = [
            ("pango", ["pango-1.0-0"]),
            ("gobject", ["gobject-2.0-0"]),
            ("cairo", ["cairo-2"]),
        ]
    else:
        targets = [
            ("pango", ["pango-1.0"]),
            ("gobject", ["gobject-2.0"]),
            ("cairo", ["cairo", "cairo-2"]),
        ]
    return [key for key, variants in targets if not any(ctypes_util.find_library(v) for v in variants)]


def check_pango_available():
    """Check if the Pango library is available

    Returns:
        tuple: (is_available: bool, message: str)"""
    prepare_pango_environment()
    missing_native = _probe_native_libs()

    try:
        from weasyprint.text.ffi import pango

        pango.pango_version()
        return True, "✓ Pango dependency detection passed, brochure PDF export available"
    except OSError as e:
        missing_note = _box_line(f"Unrecognized dependency: {', '.join(missing_native)}") if missing_native else ""
        box_top = "╔" + "═" * 64 + "╗\n"
        box_bottom = "╚" + "═" * 64 + "╝"
        return False, (
            box_top
            + _box_line("⚠️ PDF export dependency missing")
            + _box_line()
            + _box_line("Brochure preview and HTML export keep working.")
            + _box_line(f"Loader error: {str(e)[:BOX_CONTENT_WIDTH - 14]}")
            + missing_note
            + _box_line()
            + _get_platform_specific_instructions()
            + box_bottom
        )
    except ImportError:
        return False, (
            "⚠ WeasyPrint is not installed\n"
            "Solution: pip install weasyprint"
        )
    except Exception as e:
        return False, f"⚠ PDF dependency detection failed: {e}"


def log_dependency_status():
    """Record system dependency status to log"""
    is_available, message = check_pango_available()

    if is_available:
        logger.success(message)
    else:
        logger.warning(message)
        logger.info("Tip: only PDF export needs Pango; templates, editing and HTML export are unaffected")

    return is_available


if __name__ == "__main__":
    is_available, message = check_pango_available()
    print(message)
    sys.exit(0 if is_available else 1)
