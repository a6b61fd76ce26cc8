"""Run a short offscreen galaxy session in a child process and capture its output.

The child forces ``QT_QPA_PLATFORM=offscreen`` and calls ``aether.main`` with
``--headless-frames`` so no window is opened.  Running it as a subprocess
catches messages written by native libraries as well as Python logging.

Usage:
  python run_headless_capture.py [extra aether arguments...]

Outputs:
  - run_output.txt : combined stdout+stderr from the child run
  - run_exception.txt : the same text, only written when the child failed
"""
from __future__ import annotations

import os
import sys
import traceback

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = os.path.dirname(os.path.abspath(__file__))

out_file = os.path.join(ROOT, "run_output.txt")
err_file = os.path.join(ROOT, "run_exception.txt")

DEFAULT_ARGS = ["--headless-frames", "240", "--count", "5000", "--seed", "7", "--log-level", "debug"]


def _run_child_mode(argv: list) -> int:
    """Run the headless session in-process (child mode)."""
    try:
        from aether import main as m
    except ImportError:
        traceback.print_exc()
        return 3

    print("Imported aether.main OK")
    try:
        rc = m.main(argv)
    except SystemExit as se:
        print("main() raised SystemExit:", se)
        return se.code if isinstance(se.code, int) else 1
    except Exception:
        traceback.print_exc()
        return 2
    print("main() returned", rc)
    return rc


def _run_parent_mode(argv: list) -> int:
    """Launch the child process and write its output next to this script."""
    import subprocess

    env = dict(os.environ)
    env["RUN_AS_CHILD"] = "1"

    proc = subprocess.run(
        [sys.executable, os.path.abspath(__file__), *argv],
        env=env, cwd=ROOT, capture_output=True, text=True,
    )

    combined = proc.stdout + ("\n" + proc.stderr if proc.stderr else "")
    with open(out_file, "w", encoding="utf-8") as outf:
        outf.write(combined)

    if proc.returncode != 0:
        with open(err_file, "w", encoding="utf-8") as errf:
            errf.write(combined)
        print("Child process failed with code", proc.returncode, "; see", err_file)
    else:
        print("Run completed without exception; see", out_file)
    return proc.returncode


if __name__ == "__main__":
    args = sys.argv[1:] or DEFAULT_ARGS
    if os.environ.get("RUN_AS_CHILD") == "1":
        sys.exit(_run_child_mode(args))
    sys.exit(_run_parent_mode(args))
