"""
Analyzer Execution Engine.

Runs the enabled analyzers concurrently against one immutable snapshot and
collects their findings. Each analyzer has its own timeout; an analyzer that
raises or times out contributes no findings and is reported as failed, the
others are unaffected. The engine neither persists nor scores anything.
"""
import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from pageaudit.features.analysis.schemas.finding import Finding
from pageaudit.features.analyzers import (  # noqa: F401  registers the built-in modules
    aria,
    color_contrast,
    forms,
    images,
    keyboard,
    seo_on_page,
    seo_technical,
    structure,
    tables,
)
from pageaudit.features.analyzers.base import AnalyzerRegistry, Snapshot, registry as default_registry
from pageaudit.platform.config import settings
from pageaudit.platform.exceptions import AnalysisFailedError

logger = logging.getLogger(__name__)

# Threads of timed-out analyzers cannot be interrupted; they finish in the
# background on this pool and their results are dropped.
_executor = ThreadPoolExecutor(max_workers=16, thread_name_prefix="analyzer")


@dataclass
class EngineResult:
    by_module: Dict[str, List[Finding]] = field(default_factory=dict)
    attempted: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    durations: Dict[str, float] = field(default_factory=dict)

    @property
    def findings(self) -> List[Finding]:
        """Flat finding list, in module order."""
        return [f for name in self.attempted for f in self.by_module.get(name, [])]

    @property
    def all_failed(self) -> bool:
        return bool(self.attempted) and not self.succeeded


class AnalyzerEngine:
    def __init__(
        self,
        registry: Optional[AnalyzerRegistry] = None,
        default_timeout: Optional[float] = None,
    ):
        self.registry = registry or default_registry
        self.default_timeout = default_timeout or settings.ANALYZER_TIMEOUT_SECONDS

    async def _run_one(
        self, snapshot: Snapshot, name: str
    ) -> Tuple[str, Optional[List[Finding]], Optional[str], float]:
        started = time.monotonic()
        try:
            analyzer = self.registry.create(name)
        except Exception as e:
            return name, None, f"could not create analyzer: {e}", 0.0
        if analyzer is None:
            return name, None, "unknown analysis module", 0.0

        timeout = analyzer.timeout_seconds or self.default_timeout
        loop = asyncio.get_running_loop()
        try:
            findings = await asyncio.wait_for(
                loop.run_in_executor(_executor, analyzer.analyze, snapshot),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return name, None, f"timed out after {timeout:g}s", time.monotonic() - started
        except Exception as e:
            return name, None, f"{type(e).__name__}: {e}", time.monotonic() - started

        findings = list(findings or [])
        bad = [f for f in findings if not isinstance(f, Finding)]
        if bad:
            return name, None, f"returned {len(bad)} non-finding results", time.monotonic() - started
        return name, findings, None, time.monotonic() - started

    async def run(self, snapshot: Snapshot, enabled_modules: Optional[Iterable[str]] = None) -> EngineResult:
        modules = list(dict.fromkeys(enabled_modules if enabled_modules is not None else self.registry.names()))
        result = EngineResult(attempted=modules)
        if not modules:
            return result

        logger.info(f"[{snapshot.url}] Running {len(modules)} analyzers: {', '.join(modules)}")
        outcomes = await asyncio.gather(*(self._run_one(snapshot, name) for name in modules))

        for name, findings, error, duration in outcomes:
            result.durations[name] = round(duration, 3)
            if error is not None:
                result.failed.append(name)
                result.errors[name] = error
                logger.error(f"[{snapshot.url}] Analyzer {name} failed: {error}")
                continue
            result.succeeded.append(name)
            result.by_module[name] = findings

        logger.info(
            f"[{snapshot.url}] Analyzers done: {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed, {len(result.findings)} findings"
        )
        return result

    def run_sync(self, snapshot: Snapshot, enabled_modules: Optional[Iterable[str]] = None) -> EngineResult:
        return asyncio.run(self.run(snapshot, enabled_modules))

    def run_module(self, snapshot: Snapshot, name: str) -> List[Finding]:
        """Run a single module, raising AnalysisFailedError when it fails."""
        result = self.run_sync(snapshot, [name])
        if result.failed:
            raise AnalysisFailedError(f"Module {name} failed: {result.errors[name]}")
        return result.findings
