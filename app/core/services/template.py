from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

DEFAULT_TEMPLATE_DIR = str(Path(__file__).resolve().parents[2] / "templates")


class Renderer:
    _env: Environment | None = None

    @classmethod
    def initialize(cls, template_dir: str = DEFAULT_TEMPLATE_DIR) -> None:
        """
        Set up the Jinja2 environment used for email bodies.

        HTML templates are autoescaped; plain text templates are not.
        """
        cls._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(enabled_extensions=("html",)),
            enable_async=True,
        )

    @classmethod
    async def render_template(cls, template_name: str, context: dict | None = None) -> str:
        """
        Render a template asynchronously.

        Raises:
            RuntimeError: If ``initialize`` has not been called.
            TemplateNotFound: If the template does not exist.
        """
        if cls._env is None:
            raise RuntimeError("Renderer not initialized. Call initialize() first.")
        template = cls._env.get_template(template_name)
        return await template.render_async(**(context or {}))
