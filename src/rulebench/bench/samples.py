"""Code sample discovery and loading.

A case's ``test_path`` names files or directories relative to the
configuration directory.  Directories contribute their files with a
supported extension, sorted by name; files are taken as-is when their
extension is supported.  Paths that cannot be used are skipped with a
warning.

A sample is named by its file name.  When two files of the same case
share a file name, both are named by their path relative to the
configuration directory instead, so every sample name is unique within
its case.  A file reached twice (a directory plus a file inside it) is
loaded once.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

from rulebench.bench.results import CodeSample
from rulebench.errors import SampleLoadError

log = logging.getLogger("rulebench")

# Extension (without the dot) → language name.
LANGUAGE_BY_EXTENSION = {
    "py": "python",
    "pyw": "python",
    "pyi": "python-stub",
}

DEFAULT_LANGUAGE = "python"


def get_file_extension(file_name: str) -> str:
    """Return the lower-cased extension of *file_name* without the dot.

    Dotfiles such as ``.pythonrc`` and names without a dot have no
    extension.
    """
    name = Path(file_name).name
    dot = name.rfind(".")
    if dot <= 0:
        return ""
    return name[dot + 1 :].lower()


def is_supported_extension(extension: str) -> bool:
    """Whether files with *extension* can be benchmarked."""
    return extension.lower().lstrip(".") in LANGUAGE_BY_EXTENSION


def get_language_by_file_name(file_name: str) -> str:
    """Language for a sample file, ``python`` when the extension is unknown."""
    return LANGUAGE_BY_EXTENSION.get(get_file_extension(file_name), DEFAULT_LANGUAGE)


def _collect_files(test_path: str, config_dir: Path) -> list[Path]:
    resolved = (config_dir / test_path).resolve()
    if resolved.is_dir():
        return sorted(
            p
            for p in resolved.iterdir()
            if p.is_file() and is_supported_extension(get_file_extension(p.name))
        )
    if resolved.is_file():
        if is_supported_extension(get_file_extension(resolved.name)):
            return [resolved]
        log.warning("Skipping %s: unsupported file extension", test_path)
        return []
    log.warning("Could not process path %s: no such file or directory. Skipping.", test_path)
    return []


def _sample_names(files: list[Path], config_dir: Path) -> dict[Path, str]:
    counts = Counter(path.name for path in files)
    base = config_dir.resolve()
    names: dict[Path, str] = {}
    for path in files:
        if counts[path.name] == 1:
            names[path] = path.name
            continue
        try:
            names[path] = path.relative_to(base).as_posix()
        except ValueError:
            names[path] = path.as_posix()
    return names


def load_code_samples(test_path: str | list[str], config_dir: Path) -> list[CodeSample]:
    """Load every supported sample named by *test_path*.

    Args:
        test_path: A path or list of paths, relative to *config_dir*.
        config_dir: Directory containing the configuration file.

    Returns:
        The loaded samples, in path order then file-name order.

    Raises:
        SampleLoadError: If no supported file was found, or none could
            be read.
    """
    paths = test_path if isinstance(test_path, list) else [test_path]

    files: list[Path] = []
    for current in paths:
        try:
            files.extend(_collect_files(current, config_dir))
        except OSError as exc:
            log.warning("Could not process path %s: %s. Skipping.", current, exc)

    if not files:
        raise SampleLoadError(f"No supported source files found for test_path: {paths}")

    files = list(dict.fromkeys(files))
    names = _sample_names(files, config_dir)

    samples: list[CodeSample] = []
    for path in files:
        try:
            code = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("Skipping file %s due to read error: %s", path, exc)
            continue
        samples.append(
            CodeSample(
                filename=names[path],
                code=code,
                language=get_language_by_file_name(path.name),
            )
        )

    if not samples:
        raise SampleLoadError(f"No valid code samples could be loaded from test_path: {paths}")

    return samples
