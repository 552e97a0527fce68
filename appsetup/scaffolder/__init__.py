"""appsetup scaffolder -- writes the literal files of the generated project.

Quick usage::

    from appsetup.config import Config
    from appsetup.scaffolder import ProjectGenerator

    generator = ProjectGenerator(Config(output_dir=Path("/tmp/output")))
    await generator.create_directory_structure()
    written = await generator.emit_api()
"""

from appsetup.scaffolder.docker_gen import DockerGenerator
from appsetup.scaffolder.generator import ProjectGenerator
from appsetup.scaffolder.templates import TemplateRenderer

__all__ = [
    "DockerGenerator",
    "ProjectGenerator",
    "TemplateRenderer",
]
