"""Single-owner audio playback: starting a line always releases the previous one."""

import logging
import math
import os
import shutil
import subprocess
import tempfile
import threading

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from voiceover.constants import MASTER_VOLUME

logger = logging.getLogger(__name__)


class PlaybackError(RuntimeError):
    """The audio backend could not start a file."""


class FfplayInstance:
    """One running ffplay process, plus the temporary file it may be playing."""

    def __init__(self, process: subprocess.Popen, temp_path: str | None = None):
        self.process = process
        self.temp_path = temp_path

    def is_finished(self) -> bool:
        return self.process.poll() is not None

    def stop(self) -> None:
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=1)
            except subprocess.TimeoutExpired:
                self.process.kill()
        if self.temp_path and os.path.exists(self.temp_path):
            os.remove(self.temp_path)
            self.temp_path = None


class FfplayBackend:
    """Starts ffplay without blocking; at non-unity volume plays a gain-adjusted WAV copy."""

    def __init__(self, binary: str | None = None):
        self.binary = binary or shutil.which("ffplay")

    def _attenuated_copy(self, path: str, volume: float) -> str:
        audio = AudioSegment.from_file(path)
        audio = audio + 20 * math.log10(volume)
        fd, temp_path = tempfile.mkstemp(suffix=".wav", prefix="voiceover_")
        os.close(fd)
        audio.export(temp_path, format="wav")
        return temp_path

    def start(self, path: str, volume: float) -> FfplayInstance:
        if not self.binary:
            raise PlaybackError("ffplay is required but not found")
        if not os.path.exists(path):
            raise PlaybackError(f"Audio file not found: {path}")

        temp_path = self._attenuated_copy(path, volume) if volume < 1.0 else None
        try:
            process = subprocess.Popen(
                [self.binary, "-nodisp", "-autoexit", "-hide_banner", "-loglevel", "error", temp_path or path],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            if temp_path:
                os.remove(temp_path)
            raise
        return FfplayInstance(process, temp_path)


class VoicePlayer:
    """Holds at most one active playback instance.

    play() stops and disposes the current instance before starting the next,
    including when the new one fails to start. Use as a context manager to
    guarantee the last instance is released.
    """

    def __init__(self, backend=None, volume: float = MASTER_VOLUME):
        self.backend = backend if backend is not None else FfplayBackend()
        self.volume = volume
        self.current_path: str | None = None
        self._current = None
        self._lock = threading.Lock()

    def _release(self) -> None:
        instance, self._current = self._current, None
        self.current_path = None
        if instance is None:
            return
        try:
            instance.stop()
        except OSError as e:
            logger.warning("Failed to stop previous audio instance: %s", e)

    def play(self, path: str) -> bool:
        """Start `path`, replacing whatever is playing. Returns True if playback started."""
        with self._lock:
            self._release()
            if self.volume <= 0:
                logger.debug("Muted, not playing %s", path)
                return False
            try:
                self._current = self.backend.start(path, self.volume)
            except (PlaybackError, CouldntDecodeError, OSError) as e:
                logger.error("Playback failed for %s: %s", path, e)
                return False
            self.current_path = path
            logger.debug("Playing %s", path)
            return True

    def stop(self) -> None:
        with self._lock:
            self._release()

    def sweep(self) -> bool:
        """Dispose a finished instance. Returns True if one was released."""
        with self._lock:
            if self._current is not None and self._current.is_finished():
                self._release()
                return True
            return False

    @property
    def is_playing(self) -> bool:
        return self._current is not None and not self._current.is_finished()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
