"""Rich progress display for push transfers."""

from typing import Dict, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .progress import Phase, ProgressSnapshot

_DESCRIPTIONS = {
    Phase.UPLOAD: "Uploading files",
    Phase.DELETE: "Deleting remote obsolete files",
}


class RichTransferObserver:
    """TransferObserver that renders one progress bar per phase.

    Upload bars count bytes, delete bars count objects.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._progress: Optional[Progress] = None
        self._tasks: Dict[Phase, TaskID] = {}

    def _make_progress(self, phase: Phase) -> Progress:
        if phase is Phase.UPLOAD:
            columns = (
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
                TimeElapsedColumn(),
            )
        else:
            columns = (
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
            )
        return Progress(*columns, console=self.console)

    def on_phase_start(self, phase: Phase, total: int) -> None:
        self._progress = self._make_progress(phase)
        self._progress.start()
        self._tasks[phase] = self._progress.add_task(_DESCRIPTIONS[phase], total=total)

    def on_progress(self, snapshot: ProgressSnapshot) -> None:
        if self._progress is None or snapshot.phase not in self._tasks:
            return
        self._progress.update(self._tasks[snapshot.phase], completed=snapshot.done)

    def on_phase_end(self, phase: Phase) -> None:
        self.close()

    def close(self) -> None:
        """Stop rendering; safe to call when nothing is shown."""
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._tasks.clear()
