"""
Progress display for deezer-downloader using the Rich library.

One bar per batch item (album, playlist, favorites list), showing how
many tracks were downloaded, failed or skipped so far:

    Discovery            ✓ 12  ✗ 1  ⊘ 1       ━━━━━━━━━━━━━━━━━━━━  100%

Usage:
    from deezer_downloader.core.progress import DownloadProgressBar

    with DownloadProgressBar(total=len(songs), description="Discovery") as progress:
        for song in songs:
            progress.update(success=process(song))
"""

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import BarColumn, Progress, ProgressColumn, Task, TaskID
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(162,56,255)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(162,56,255)",
    "progress.percentage": "white",
})

DESCRIPTION_WIDTH = 20
STATUS_WIDTH = 24
BAR_WIDTH = 40


class FixedWidthColumn(ProgressColumn):
    """Markup column padded or cut to exactly `width` cells."""

    def __init__(
        self,
        template: str,
        width: int,
        style: StyleType = "white",
        justify: JustifyMethod = "left",
        overflow: OverflowMethod = "ellipsis",
    ) -> None:
        super().__init__()
        self.template = template
        self.width = width
        self.style = style
        self.justify: JustifyMethod = justify
        self.overflow: OverflowMethod = overflow

    def render(self, task: Task) -> Text:
        text = Text.from_markup(self.template.format(task=task), style=self.style, justify=self.justify)
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class DownloadProgressBar:
    """
    Live bar for one batch of track downloads.

    Counts every finished track as downloaded, failed or skipped. Use it
    as a context manager; the theme is pushed on enter and popped on exit.
    """

    def __init__(self, total: int, description: str = "Downloading") -> None:
        self.total = total
        self.description = description
        self.downloaded = 0
        self.failed = 0
        self.skipped = 0

        self.console = get_console()
        self.progress = Progress(
            FixedWidthColumn("{task.description}", DESCRIPTION_WIDTH),
            FixedWidthColumn("{task.fields[status]}", STATUS_WIDTH),
            BarColumn(bar_width=BAR_WIDTH, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            refresh_per_second=10,
        )
        self._task: TaskID | None = None

    @property
    def completed(self) -> int:
        return self.downloaded + self.failed + self.skipped

    def __enter__(self) -> "DownloadProgressBar":
        self.console.push_theme(PROGRESS_THEME)
        self.progress.start()
        self._task = self.progress.add_task(self.description, total=self.total, status=self._status())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()
        self.console.pop_theme()
        self._task = None

    def update(self, success: bool, skipped: bool = False) -> None:
        """
        Record one finished track.

        Args:
            success: The track was downloaded and tagged.
            skipped: The track was skipped because its file exists.
        """
        if skipped:
            self.skipped += 1
        elif success:
            self.downloaded += 1
        else:
            self.failed += 1

        if self._task is not None:
            self.progress.update(self._task, completed=self.completed, status=self._status())

    def _status(self) -> str:
        status = f"[green]✓ {self.downloaded}[/green]  [red]✗ {self.failed}[/red]"
        if self.skipped:
            status += f"  [yellow]⊘ {self.skipped}[/yellow]"
        return status
