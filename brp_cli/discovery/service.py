"""Locate the target app binary from cargo project metadata.

This is a thin collaborator: it turns an optional app name (or path) and a
build profile into a binary path plus the directory the app must run from.
"""

import json
import logging
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from brp_cli.discovery.views import BinaryInfo, ResolvedApp
from brp_cli.exceptions import ProcessLifecycleError

logger = logging.getLogger(__name__)

ENGINE_CRATE = 'bevy'

MetadataLoader = Callable[[Path], dict[str, Any] | None]


def load_cargo_metadata(directory: Path) -> dict[str, Any] | None:
	"""Run `cargo metadata` in `directory`. Returns None when cargo is missing or fails."""
	try:
		result = subprocess.run(
			['cargo', 'metadata', '--format-version', '1', '--no-deps'],
			cwd=directory,
			capture_output=True,
			text=True,
			check=False,
		)
	except OSError as e:
		logger.debug(f'cargo metadata unavailable: {e}')
		return None
	if result.returncode != 0:
		logger.debug(f'cargo metadata failed in {directory}: {result.stderr.strip()}')
		return None
	try:
		return json.loads(result.stdout)
	except json.JSONDecodeError:
		return None


class MetadataCache:
	"""Get-or-compute cache of project metadata keyed by canonical directory.

	Failed lookups are cached too (as None) so a missing toolchain is only
	probed once per directory.
	"""

	def __init__(self) -> None:
		self._entries: dict[Path, dict[str, Any] | None] = {}

	def get_or_compute(self, directory: Path, loader: MetadataLoader) -> dict[str, Any] | None:
		key = directory.resolve()
		if key not in self._entries:
			self._entries[key] = loader(key)
		return self._entries[key]

	def clear(self) -> None:
		self._entries.clear()


def find_binary(name: str, target_dir: Path, profile: str | None = None) -> Path:
	"""Locate a built binary under `<target_dir>/<profile>/`."""
	if '/' in name or '\\' in name:
		path = Path(name)
		if path.exists():
			return path
		raise ProcessLifecycleError(f'App binary not found at specified path: {path}')

	profile = profile or 'debug'
	if '/' in profile or '\\' in profile or '\0' in profile:
		raise ProcessLifecycleError(f"Invalid profile name '{profile}': profile names cannot contain path separators")

	candidate = target_dir / profile / name
	if candidate.exists():
		return candidate
	if sys.platform == 'win32' and not name.endswith('.exe'):
		exe = target_dir / profile / f'{name}.exe'
		if exe.exists():
			return exe

	raise ProcessLifecycleError(
		f"App binary '{name}' not found in target directory: {target_dir}\n"
		f'Searched in:\n'
		f'- {candidate}\n'
		f"Try building the app with 'cargo build --profile {profile}' first."
	)


class AppDiscovery:
	"""Resolves which app to run and where to run it from."""

	def __init__(
		self,
		cache: MetadataCache | None = None,
		cwd: Path | None = None,
		loader: MetadataLoader = load_cargo_metadata,
	):
		self.cache = cache or MetadataCache()
		self.cwd = (cwd or Path.cwd()).resolve()
		self._loader = loader

	def metadata(self) -> dict[str, Any] | None:
		return self.cache.get_or_compute(self.cwd, self._loader)

	def resolve(self, app: str | None = None, profile: str | None = None) -> ResolvedApp:
		if app and ('/' in app or '\\' in app):
			path = Path(app) if Path(app).is_absolute() else self.cwd / app
			binary = find_binary(str(path), self.cwd, profile).resolve()
			return ResolvedApp(name=binary.name, binary_path=binary, working_dir=_project_root(binary) or self.cwd)

		metadata = self.metadata()
		if app:
			info = self._find_by_name(metadata, app) if metadata else None
			if info is None:
				# Not a workspace binary we know about: assume a conventional layout
				target_dir = self.cwd / 'target'
				return ResolvedApp(name=app, binary_path=find_binary(app, target_dir, profile).resolve(), working_dir=self.cwd)
			if not info.is_bevy_app:
				logger.warning(f"'{app}' does not appear to be a Bevy app")
		else:
			if metadata is None:
				raise ProcessLifecycleError(
					'Could not detect cargo project information. Please specify an app with --app <name>'
				)
			info = self.default_binary()
			if info is None:
				raise ProcessLifecycleError(
					'No Bevy app found in the current workspace. Please specify an app with --app <name>'
				)
			logger.info(f'Detected app: {info.name}')

		assert metadata is not None
		target_dir = Path(metadata.get('target_directory') or self.cwd / 'target')
		binary = find_binary(info.name, target_dir, profile).resolve()
		return ResolvedApp(name=info.name, binary_path=binary, working_dir=info.manifest_dir)

	def binaries(self) -> list[BinaryInfo]:
		"""All binary targets of workspace members."""
		metadata = self.metadata()
		if not metadata:
			return []
		return [info for package in _members(metadata) for info in _package_binaries(package)]

	def default_binary(self) -> BinaryInfo | None:
		"""The binary `cargo run` would most plausibly start from the current directory."""
		metadata = self.metadata()
		if not metadata:
			return None
		members = _members(metadata)

		for package in members:
			pkg_dir = Path(package['manifest_path']).parent
			if self.cwd == pkg_dir or pkg_dir in self.cwd.parents:
				return _default_in_package(package)

		engine_packages = [p for p in members if _depends_on_engine(p)]
		for package in engine_packages:
			if package.get('default_run'):
				return _default_in_package(package)
		for package in engine_packages:
			binary = _default_in_package(package)
			if binary is not None:
				return binary

		if len(members) == 1:
			return _default_in_package(members[0])
		return None

	def _find_by_name(self, metadata: dict[str, Any], name: str) -> BinaryInfo | None:
		for package in _members(metadata):
			for info in _package_binaries(package):
				if info.name == name:
					return info
		return None


def _members(metadata: dict[str, Any]) -> list[dict[str, Any]]:
	member_ids = set(metadata.get('workspace_members') or [])
	return [p for p in metadata.get('packages', []) if not member_ids or p.get('id') in member_ids]


def _depends_on_engine(package: dict[str, Any]) -> bool:
	# Direct dependency edges only; workspace-inherited dependencies are not inspected
	return any(dep.get('name') == ENGINE_CRATE for dep in package.get('dependencies', []))


def _package_binaries(package: dict[str, Any]) -> list[BinaryInfo]:
	is_bevy_app = _depends_on_engine(package)
	return [
		BinaryInfo(name=target['name'], manifest_path=Path(package['manifest_path']), is_bevy_app=is_bevy_app)
		for target in package.get('targets', [])
		if 'bin' in target.get('kind', [])
	]


def _default_in_package(package: dict[str, Any]) -> BinaryInfo | None:
	binaries = _package_binaries(package)
	default_run = package.get('default_run')
	if default_run:
		for info in binaries:
			if info.name == default_run:
				return info
	return binaries[0] if binaries else None


def _project_root(path: Path) -> Path | None:
	for parent in path.parents:
		if (parent / 'Cargo.toml').exists():
			return parent
	return None

