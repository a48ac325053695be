"""
Base operation class and models.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from netdebug.core.runner import BoundedProcessRunner


class OperationResult(BaseModel):
    """Operation result model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: str
    target: str
    status: str  # 'success', 'warning', 'failure'
    timestamp: datetime
    duration: float
    metrics: Dict[str, Any] = {}
    summary: Optional[str] = None
    raw_output: Optional[str] = None
    error: Optional[str] = None


class BaseOperation(ABC):
    """Base class for all troubleshooting operations."""

    name: str = "Operation"

    def __init__(
        self,
        config,
        executor,
        csv_handler,
        runner: Optional[BoundedProcessRunner] = None,
        run_dir: Optional[Path] = None,
    ):
        self.config = config
        self.executor = executor
        self.csv_handler = csv_handler
        self.run_dir = run_dir or Path(csv_handler.csv_file).parent
        self.runner = runner or BoundedProcessRunner(
            app_logger=executor.logger,
            tick=config.tick_seconds,
        )

    @abstractmethod
    def run(self) -> OperationResult:
        """Run the operation against the configured cluster/host."""
        pass

    def _result(
        self,
        target: str,
        status: str,
        start_time: datetime,
        summary: str,
        metrics: Optional[Dict[str, Any]] = None,
        raw_output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> OperationResult:
        """Build a result, record it in the CSV ledger and return it."""
        result = OperationResult(
            operation=self.name,
            target=target,
            status=status,
            timestamp=start_time,
            duration=(datetime.now() - start_time).total_seconds(),
            metrics=metrics or {},
            summary=summary,
            raw_output=raw_output,
            error=error,
        )
        self.csv_handler.record(result)
        return result
