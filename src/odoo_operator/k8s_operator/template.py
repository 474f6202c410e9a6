import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import jinja2
import pykube
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from odoo_operator.exception import TemplateError

module_logger = logging.getLogger(__name__)


def _required(value: Any, name: str = 'value') -> Any:
    if value is None or value == '':
        raise jinja2.TemplateRuntimeError(f'{name} is required but empty')
    return value


class TemplateRenderer(ABC):

    @abstractmethod
    def render(self, template_path: str, data: Dict[str, Any]) -> pykube.Job:
        raise NotImplementedError


class JobTemplateRenderer(TemplateRenderer):
    """Renders Job manifests from Jinja2 templates below ``template_directory``.

    The template output must be a single YAML document describing a ``batch/v1`` Job.
    The returned object is not bound to an API client, the store binds it on creation.
    """

    def __init__(self, template_directory: str) -> None:
        self.template_directory = template_directory
        self._environment = jinja2.Environment(loader=jinja2.FileSystemLoader(template_directory),
                                               undefined=jinja2.StrictUndefined,
                                               keep_trailing_newline=True)
        self._environment.filters['required'] = _required

    def render(self, template_path: str, data: Dict[str, Any]) -> pykube.Job:
        try:
            template = self._environment.get_template(template_path)
            rendered = template.render(**data)
        except jinja2.TemplateNotFound as exception:
            raise TemplateError(f'Template {template_path} not found in {self.template_directory}.') from exception
        except jinja2.TemplateError as exception:
            raise TemplateError(f'Template {template_path} could not be rendered: {exception}.') from exception

        try:
            manifest = YAML(typ='safe', pure=True).load(rendered)
        except YAMLError as exception:
            raise TemplateError(f'Template {template_path} did not render to valid YAML: {exception}.') from exception

        if not isinstance(manifest, dict):
            raise TemplateError(f'Template {template_path} did not render to a mapping.')
        if manifest.get('kind') != pykube.Job.kind:
            raise TemplateError(f'Template {template_path} rendered unhandled kind {manifest.get("kind")}.')
        if not (manifest.get('metadata') or {}).get('name'):
            raise TemplateError(f'Template {template_path} rendered a {manifest["kind"]} without a name.')

        module_logger.debug(f'Rendered template {template_path}: {manifest}')
        return pykube.Job(None, manifest)
