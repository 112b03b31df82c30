from __future__ import annotations
import os
import shutil
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from .errors import ArtifactMissing, RuntimeNotFound, SpawnFailed
from .logging_setup import get_logger

log = get_logger("minem.proc")

@dataclass
class LaunchHandle:
    pid: int
    command: List[str]
    cwd: Path
    detached: bool
    proc: subprocess.Popen = field(repr=False)
    returncode: Optional[int] = None

def build_command(runtime: str, artifact_filename: str, heap_min: str, heap_max: str,
                  launcher_args: List[str], runtime_args: List[str]) -> List[str]:
    return [
        runtime,
        f"-Xmx{heap_max}",
        f"-Xms{heap_min}",
        *launcher_args,
        "-jar", artifact_filename,
        "nogui",
        *runtime_args,
    ]

def _pump_output(src, dst) -> None:
    for line in iter(src.readline, ""):
        dst.write(line)
        dst.flush()
    src.close()

def _pump_input(src, dst) -> None:
    try:
        for line in iter(src.readline, ""):
            dst.write(line)
            dst.flush()
    except (BrokenPipeError, ValueError, OSError) as e:
        # child went away or our stdin is not readable (closed/captured)
        log.debug("stdin forwarding stopped: %s", e)
    finally:
        try:
            dst.close()
        except OSError as e:
            log.debug("closing child stdin failed: %s", e)

class ProcessRunner:
    def __init__(self, runtime: str = "java", stop_timeout: float = 30.0):
        self.runtime = runtime
        self.stop_timeout = stop_timeout

    def resolve_runtime(self) -> str:
        found = shutil.which(self.runtime)
        if not found:
            raise RuntimeNotFound(self.runtime)
        return found

    def launch(self, executable_dir: Path, artifact_filename: str, heap_min: str, heap_max: str,
               launcher_args: Optional[List[str]] = None, runtime_args: Optional[List[str]] = None,
               detach: bool = False) -> LaunchHandle:
        """
        Start the server jar in `executable_dir`.

        Attached: forwards stdout/stdin, waits, and sets `returncode` on the handle.
        Detached: no inherited streams, own session; returns immediately.
        """
        executable_dir = Path(executable_dir)
        artifact = executable_dir / artifact_filename
        if not artifact.is_file():
            raise ArtifactMissing(artifact)
        runtime = self.resolve_runtime()

        cmd = build_command(runtime, artifact_filename, heap_min, heap_max,
                            list(launcher_args or []), list(runtime_args or []))
        log.debug("Starting server: %s (cwd=%s)", " ".join(cmd), executable_dir)

        if detach:
            return self._spawn_detached(cmd, executable_dir)
        handle = self._spawn_attached(cmd, executable_dir)
        handle.returncode = self.wait(handle)
        return handle

    def _spawn_detached(self, cmd: List[str], cwd: Path) -> LaunchHandle:
        kwargs = {}
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        try:
            proc = subprocess.Popen(cmd, cwd=str(cwd), stdin=subprocess.DEVNULL,
                                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                                    close_fds=True, **kwargs)
        except OSError as e:
            raise SpawnFailed(e) from e
        h = LaunchHandle(pid=proc.pid, command=cmd, cwd=cwd, detached=True, proc=proc)
        log.info("server started in the background (pid=%s)", proc.pid)
        return h

    def _spawn_attached(self, cmd: List[str], cwd: Path) -> LaunchHandle:
        try:
            proc = subprocess.Popen(cmd, cwd=str(cwd), stdin=subprocess.PIPE, stdout=subprocess.PIPE,
                                    stderr=subprocess.STDOUT, text=True, bufsize=1, errors="replace")
        except OSError as e:
            raise SpawnFailed(e) from e
        return LaunchHandle(pid=proc.pid, command=cmd, cwd=cwd, detached=False, proc=proc)

    def wait(self, handle: LaunchHandle) -> int:
        proc = handle.proc
        out = threading.Thread(target=_pump_output, args=(proc.stdout, sys.stdout), name="minem-stdout", daemon=True)
        out.start()
        if sys.stdin is not None:
            threading.Thread(target=_pump_input, args=(sys.stdin, proc.stdin), name="minem-stdin", daemon=True).start()

        previous = self._forward_signals(handle)
        try:
            rc = proc.wait()
        finally:
            self._restore_signals(previous)
        out.join(timeout=5)
        log.info("server exited with code %s", rc)
        return rc

    # --- termination ---
    def _forward_signals(self, handle: LaunchHandle) -> dict:
        """Terminate the child when we get SIGINT/SIGTERM. Only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            return {}

        def _handler(signum, frame):
            log.info("received signal %s, stopping server (pid=%s)", signum, handle.pid)
            threading.Thread(target=self.stop, args=(handle,), daemon=True).start()

        previous = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, _handler)
        return previous

    @staticmethod
    def _restore_signals(previous: dict) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    def stop(self, handle: LaunchHandle) -> None:
        proc = handle.proc
        if proc.poll() is not None:
            return
        log.info("Stopping server (pid=%s)", proc.pid)
        proc.terminate()
        try:
            proc.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            log.warning("Killing server (pid=%s)", proc.pid)
            proc.kill()
