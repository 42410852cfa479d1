from pathlib import Path

from pydantic import BaseModel


class BinaryInfo(BaseModel):
	"""A binary target declared in the project metadata"""

	name: str
	manifest_path: Path
	is_bevy_app: bool = False

	@property
	def manifest_dir(self) -> Path:
		return self.manifest_path.parent


class ResolvedApp(BaseModel):
	"""Everything needed to launch the target app"""

	name: str
	binary_path: Path
	working_dir: Path
