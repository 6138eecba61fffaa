"""
Command channel package.

A single request/response link between the orchestrator and the privileged
executor process, with two transports:
- file: well-known request/response artifacts, atomically replaced
- pipe: a multiprocessing connection to an executor child process
"""

from .file import FileChannel, FileCommandServer
from .pipe import PipeChannel, serve_connection
from .protocol import CommandChannel, Handler, build_response

__all__ = [
    "CommandChannel",
    "Handler",
    "build_response",
    "FileChannel",
    "FileCommandServer",
    "PipeChannel",
    "serve_connection",
]
