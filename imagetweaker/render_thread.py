"""Background render worker for Qt front ends."""

from PyQt6.QtCore import QThread, pyqtSignal

from .image_processing import ImageProcessor
from .models import EffectSettings


class RenderThread(QThread):
    """Background thread that renders one settings snapshot off the UI thread.

    AIDEV-NOTE: The version is taken in the constructor, on the submitting
    thread, so submission order decides which result wins even when threads
    finish out of order. Superseded runs emit nothing.
    """

    finished = pyqtSignal(object)  # RenderResult
    error = pyqtSignal(str)  # Error message

    def __init__(self, processor: ImageProcessor, source, settings: EffectSettings):
        super().__init__()
        self.processor = processor
        self.source = source
        self.settings = settings
        self.version = processor.submit()

    def run(self):
        """Execute the pipeline in background."""
        try:
            result = self.processor.render(self.source, self.settings, self.version)
            if result is not None:
                self.finished.emit(result)
        except Exception as e:
            self.error.emit(str(e))
