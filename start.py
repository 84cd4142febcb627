#!/usr/bin/env python3
"""
Process launcher for platform deployments.

One image serves both roles; SERVICE_TYPE picks which process this
container becomes:
  - web (default): gunicorn with Uvicorn workers serving testgen.api.main:app
  - worker: the generation worker pool for the suggestions and code queues
"""

import os
import sys


def web_command() -> list[str]:
    port = os.environ.get("PORT", "8000")
    return [
        "gunicorn", "testgen.api.main:app",
        "--workers", os.environ.get("WEB_CONCURRENCY", "2"),
        "--worker-class", "uvicorn.workers.UvicornWorker",
        "--bind", f"0.0.0.0:{port}",
        "--timeout", "60",
        "--graceful-timeout", "30",
    ]


def worker_command() -> list[str]:
    return [sys.executable, "-m", "testgen.jobs.run_worker", "--queues", "suggestions", "code"]


COMMANDS = {
    "web": web_command,
    "worker": worker_command,
}


if __name__ == "__main__":
    service_type = os.environ.get("SERVICE_TYPE", "web")
    if service_type not in COMMANDS:
        print(f"ERROR: SERVICE_TYPE must be one of {', '.join(COMMANDS)}; got {service_type!r}")
        sys.exit(1)

    cmd = COMMANDS[service_type]()
    print(f"[{service_type}] exec: {' '.join(cmd)}", flush=True)
    os.execvp(cmd[0], cmd)
