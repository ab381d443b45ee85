# clermontyping/scripts/runner.py
from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Tuple
import shutil
import subprocess

TIMEOUT_STATUS = 124
NOT_FOUND_STATUS = 127


class ToolFailure(Exception):
    """An external command exited with a non-zero status."""

    def __init__(self, tool: str, returncode: int, output: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.output = output or ""
        super().__init__(f"{tool} failed (exit {returncode})")

    def tail(self, n: int = 5) -> str:
        lines = [ln for ln in self.output.splitlines() if ln.strip()]
        return "\n".join(lines[-n:])


def compose_tool_cmd(cmd: List[str], env_name: Optional[str]) -> List[str]:
    """Wrap command to run inside a conda/mamba/micromamba env if requested."""
    if env_name:
        if shutil.which("conda"):
            return ["conda", "run", "--no-capture-output", "-n", env_name] + cmd
        if shutil.which("micromamba"):
            return ["micromamba", "run", "-n", env_name] + cmd
        if shutil.which("mamba"):
            return ["mamba", "run", "-n", env_name] + cmd
    return cmd


def run(cmd, cwd, log, env_name=None, timeout=None, stdout_path: Optional[Path] = None,
        merge_stderr: bool = True) -> Tuple[int, str]:
    """
    Run an external command and return (returncode, output).

    Output is stdout+stderr combined, or stderr alone when stdout_path is given
    (stdout is then written to that file). With merge_stderr=False the output
    is stdout alone and stderr only goes to the debug log; on a non-zero
    status stderr is appended so failures stay diagnosable.
    Never raises: a command that cannot be started returns 127, one that
    outlives `timeout` seconds returns 124.
    """
    cmd_exec = compose_tool_cmd(list(cmd), env_name)
    # normalize everything to str for safe logging/subprocess
    if any(isinstance(x, bool) for x in cmd_exec):
        log.error(f"BUG: command contains boolean(s): {cmd_exec!r}")
    cmd_exec = [str(x) for x in cmd_exec]
    log.debug(f"RUN: {' '.join(cmd_exec)}" + (f" > {stdout_path}" if stdout_path else ""))
    try:
        if stdout_path is not None:
            with open(stdout_path, "w") as fh:
                p = subprocess.run(
                    cmd_exec,
                    cwd=str(cwd) if cwd else None,
                    stdout=fh,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=timeout,
                )
            return p.returncode, p.stderr or ""
        if not merge_stderr:
            p = subprocess.run(
                cmd_exec,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout,
            )
            err = p.stderr or ""
            if err.strip():
                log.debug(f"STDERR ({cmd_exec[0]}): {err.strip()}")
            if p.returncode != 0:
                return p.returncode, (p.stdout or "") + err
            return p.returncode, p.stdout or ""
        p = subprocess.run(
            cmd_exec,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
        return p.returncode, p.stdout
    except subprocess.TimeoutExpired:
        log.error(f"Timed out after {timeout}s: {cmd_exec[0]}")
        return TIMEOUT_STATUS, f"[runner] Timed out after {timeout}s"
    except OSError as e:
        return NOT_FOUND_STATUS, f"[runner] Failed to execute: {e}"


def check(tool: str, rc: int, out: str) -> str:
    """Raise ToolFailure unless rc is zero; pass the output through otherwise."""
    if rc != 0:
        raise ToolFailure(tool, rc, out)
    return out


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)
