"""Shared fixtures: isolated session directory, a runnable fake app, free ports."""

import socket
import stat
import subprocess
import sys
import time
from pathlib import Path

import pytest

from brp_cli.discovery import ResolvedApp
from brp_cli.support.process import ensure_terminated

FAKE_APP = Path(__file__).parent / 'fake_app.py'


def free_port() -> int:
	"""A port the OS just handed out, so very likely still free."""
	with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
		sock.bind(('127.0.0.1', 0))
		return sock.getsockname()[1]


class StaticDiscovery:
	"""Discovery double that always resolves to the same app."""

	def __init__(self, app: ResolvedApp):
		self.app = app
		self.calls: list[tuple[str | None, str | None]] = []

	def resolve(self, app: str | None = None, profile: str | None = None) -> ResolvedApp:
		self.calls.append((app, profile))
		return self.app


@pytest.fixture(autouse=True)
def session_dir(tmp_path, monkeypatch) -> Path:
	"""Keep session descriptors and logs out of the real temp directory."""
	directory = tmp_path / 'sessions'
	directory.mkdir()
	monkeypatch.setenv('BRP_SESSION_DIR', str(directory))
	monkeypatch.setenv('BRP_HOST', '127.0.0.1')
	return directory


@pytest.fixture
def fake_app(tmp_path) -> ResolvedApp:
	"""The fake app behind an executable wrapper, as discovery would resolve a real binary.

	The wrapper execs the interpreter so the spawned pid is the server's pid.
	"""
	project = tmp_path / 'project'
	project.mkdir()
	wrapper = project / 'fake_app'
	wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_APP}" "$@"\n')
	wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
	return ResolvedApp(name='fake_app', binary_path=wrapper, working_dir=project)


@pytest.fixture
def discovery(fake_app) -> StaticDiscovery:
	return StaticDiscovery(fake_app)


@pytest.fixture
def unused_port() -> int:
	return free_port()


@pytest.fixture
def running_app():
	"""A fake app already listening on a free port; yields the port."""
	port = free_port()
	proc = subprocess.Popen(
		[sys.executable, str(FAKE_APP), '--port', str(port)],
		stdout=subprocess.DEVNULL,
		stderr=subprocess.DEVNULL,
	)
	try:
		deadline = time.monotonic() + 10
		while not _accepts_connections(port):
			if time.monotonic() > deadline or proc.poll() is not None:
				pytest.fail('fake app did not start')
			time.sleep(0.05)
		yield port
	finally:
		ensure_terminated(proc.pid)
		proc.wait(timeout=5)


def _accepts_connections(port: int) -> bool:
	try:
		with socket.create_connection(('127.0.0.1', port), timeout=0.5):
			return True
	except OSError:
		return False
