"""
Script loader.

Reads script sources, parses them and registers their nodes with a
DialogueContext. Every source is its own unit: a file that fails to read,
lex or parse is logged and reported, and the rest still load.

Usage:
    context = DialogueContext()
    loader = ScriptLoader(context)
    report = loader.load_directory("assets/dialogue")
    if not report.ok:
        for failure in report.failures:
            print(failure.origin, failure.message)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dialogscript.core.config import EngineConfig
from dialogscript.language.parser import parse_script
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.errors import DialogueScriptError

logger = logging.getLogger(__name__)


@dataclass
class LoadFailure:
    origin: str
    message: str
    error: Exception


@dataclass
class LoadReport:
    """
    Outcome of one or more loads.

    Attributes:
        loaded: Origins that registered successfully
        nodes: Node names registered, in load order
        failures: Units that did not load
    """
    loaded: list[str] = field(default_factory=list)
    nodes: list[str] = field(default_factory=list)
    failures: list[LoadFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: LoadReport) -> None:
        self.loaded.extend(other.loaded)
        self.nodes.extend(other.nodes)
        self.failures.extend(other.failures)


class ScriptLoader:
    """Loads script units into a context."""

    def __init__(
        self,
        context: DialogueContext,
        config: Optional[EngineConfig] = None,
    ):
        self.context = context
        self.config = config or context.config

    def load_string(self, source: str, origin: str = "<string>") -> LoadReport:
        """Parse and register one script source."""
        report = LoadReport()
        try:
            script = parse_script(source)
            names = self.context.register_script(script)
        except DialogueScriptError as e:
            logger.error(f"Failed to load {origin}: {e}")
            report.failures.append(LoadFailure(origin, str(e), e))
            return report

        report.loaded.append(origin)
        report.nodes.extend(names)
        logger.debug(f"Loaded {len(names)} nodes from {origin}")
        return report

    def load_file(self, path: str | Path) -> LoadReport:
        """Read a UTF-8 script file and load it."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                source = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            report = LoadReport()
            report.failures.append(LoadFailure(str(path), str(e), e))
            return report

        return self.load_string(source, str(path))

    def load_directory(self, root: str | Path) -> LoadReport:
        """Load every script file under root, recursively, in sorted order."""
        root = Path(root)
        report = LoadReport()

        if not root.is_dir():
            logger.warning(f"Script directory not found: {root}")
            return report

        extensions = self.config.script_extensions
        for path in sorted(root.rglob("*")):
            if path.is_file() and path.suffix.lower() in extensions:
                report.merge(self.load_file(path))

        logger.info(
            f"Loaded {len(report.loaded)} scripts "
            f"({len(report.nodes)} nodes) from {root}, "
            f"{len(report.failures)} failed"
        )
        return report
