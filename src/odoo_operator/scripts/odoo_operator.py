#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import argparse
import os
import sys
from typing import NamedTuple, Type, Sequence

import pykube
from ruamel.yaml import YAML

import odoo_operator.exception
from odoo_operator.config import Config
from odoo_operator.logging import logger, init_logging

CONFIG_FILE_ENV_NAME = 'ODOO_OPERATOR_CONFIG'


class _ExceptionMapping(NamedTuple):
    exception: Type[BaseException]
    exit_code: int
    include_stacktrace: bool


def run(*, config: Config, namespaces: Sequence[str]) -> None:
    import kopf
    from odoo_operator.k8s_operator import OperatorContext

    OperatorContext.configure(config)

    if not namespaces:
        namespaces = config.get('namespaces', types=list)

    logger.info('Starting operator, watching {}.'.format(
        'namespaces {}'.format(', '.join(namespaces)) if namespaces else 'all namespaces'))
    kopf.run(standalone=True, clusterwide=not namespaces, namespaces=list(namespaces))


def render_copier_job(*, config: Config, namespace: str, name: str) -> None:
    from odoo_operator.k8s_operator import OperatorContext
    from odoo_operator.k8s_operator.components.copier import Copier
    from odoo_operator.k8s_operator.context import ComponentContext
    from odoo_operator.k8s_operator.resources import OdooInstance

    OperatorContext.configure(config)
    context = ComponentContext.with_timeout(timeout=config.get('reconcileTimeout', types=int),
                                            store=OperatorContext.store,
                                            renderer=OperatorContext.renderer)
    try:
        context.instance = context.store.get(context, OdooInstance, namespace=namespace, name=name)
    except pykube.exceptions.ObjectDoesNotExist:
        raise odoo_operator.exception.UsageError(f'{OdooInstance.kind} {namespace}/{name} does not exist.')

    copier = Copier.from_config(config)
    if context.instance.parent_hostname is None:
        raise odoo_operator.exception.UsageError(f'{OdooInstance.kind} {namespace}/{name} is a root instance.')

    job = copier.render_job(context)
    yaml = YAML(typ='safe', pure=True)
    yaml.default_flow_style = False
    yaml.dump(job.obj, sys.stdout)


def check_config(*, config: Config) -> None:
    template_directory = config.get('templateDirectory', types=str)
    job_template = config.get('copier.jobTemplate', types=str)
    if not os.path.isfile(os.path.join(template_directory, job_template)):
        raise odoo_operator.exception.ConfigurationError(
            f'Copier job template {job_template} not found in {template_directory}.')
    logger.info('Configuration is valid.')


def main():
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter, allow_abbrev=False)

    parser.add_argument('-c', '--config-file', default=None, type=str, help='Specify a non-default configuration file')
    parser.add_argument('-m',
                        '--machine-output',
                        action='store_true',
                        default=False,
                        help='Enable machine-readable JSON logging')
    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO',
                        help='Only log messages of this level or above on the console')
    parser.add_argument('--no-color',
                        action='store_true',
                        default=False,
                        help='Disable colorization of console logging')

    subparsers_root = parser.add_subparsers(title='commands')

    # RUN
    p = subparsers_root.add_parser('run', help='Run the operator')
    p.add_argument('-n',
                   '--namespace',
                   action='append',
                   dest='namespaces',
                   metavar='namespace',
                   default=[],
                   help='Only watch this namespace (can be repeated, overrides the configuration)')
    p.set_defaults(func=run)

    # RENDER-COPIER-JOB
    p = subparsers_root.add_parser('render-copier-job', help='Show the copier job for an instance')
    p.add_argument('namespace', help='Namespace of the instance')
    p.add_argument('name', help='Name of the instance')
    p.set_defaults(func=render_copier_job)

    # CHECK-CONFIG
    p = subparsers_root.add_parser('check-config', help='Validate the configuration')
    p.set_defaults(func=check_config)

    args = parser.parse_args()

    if not hasattr(args, 'func'):
        parser.print_usage()
        sys.exit(os.EX_USAGE)

    console_formatter = 'console-colored'
    if args.machine_output:
        console_formatter = 'json'
    elif args.no_color:
        console_formatter = 'console-plain'

    init_logging(console_level=args.log_level, console_formatter=console_formatter)

    # From most specific to least specific
    # yapf: disable
    exception_mappings = [
        _ExceptionMapping(exception=odoo_operator.exception.UsageError, exit_code=os.EX_USAGE, include_stacktrace=False),
        _ExceptionMapping(exception=odoo_operator.exception.ConfigurationError, exit_code=os.EX_CONFIG, include_stacktrace=False),
        _ExceptionMapping(exception=odoo_operator.exception.ReconcileError, exit_code=os.EX_DATAERR, include_stacktrace=False),
        _ExceptionMapping(exception=odoo_operator.exception.InternalError, exit_code=os.EX_SOFTWARE, include_stacktrace=True),
        _ExceptionMapping(exception=pykube.exceptions.KubernetesError, exit_code=os.EX_UNAVAILABLE, include_stacktrace=False),
        _ExceptionMapping(exception=PermissionError, exit_code=os.EX_NOPERM, include_stacktrace=False),
        _ExceptionMapping(exception=FileNotFoundError, exit_code=os.EX_NOINPUT, include_stacktrace=False),
        _ExceptionMapping(exception=ConnectionError, exit_code=os.EX_IOERR, include_stacktrace=True),
        _ExceptionMapping(exception=OSError, exit_code=os.EX_OSERR, include_stacktrace=True),
        _ExceptionMapping(exception=KeyboardInterrupt, exit_code=os.EX_NOINPUT, include_stacktrace=False),
        _ExceptionMapping(exception=BaseException, exit_code=os.EX_SOFTWARE, include_stacktrace=True),
    ]
    # yapf: enable

    try:
        config_file = args.config_file or os.getenv(CONFIG_FILE_ENV_NAME)
        if config_file is not None:
            with open(config_file, 'r', encoding='utf-8') as f:
                config = Config(ad_hoc_config=f.read())
        else:
            config = Config()

        if config.get('logFile', None, types=(str, type(None))) is not None:
            init_logging(logfile=config.get('logFile', types=str),
                         console_level=args.log_level,
                         console_formatter=console_formatter)

        func_args = dict(args._get_kwargs())
        func = func_args.pop('func')
        for global_arg in ('config_file', 'log_level', 'machine_output', 'no_color'):
            del func_args[global_arg]

        logger.debug('{0}(**{1!r})'.format(func.__name__, func_args))
        func(config=config, **func_args)
        sys.exit(os.EX_OK)
    except SystemExit:
        raise
    except BaseException as exception:
        for case in exception_mappings:
            if isinstance(exception, case.exception):
                message = str(exception)
                if message:
                    message = '{}: {}'.format(exception.__class__.__name__, message)
                else:
                    message = '{} exception occurred.'.format(exception.__class__.__name__)
                if case.include_stacktrace:
                    logger.error(message, exc_info=True)
                else:
                    logger.debug(message, exc_info=True)
                    logger.error(message)
                sys.exit(case.exit_code)


if __name__ == '__main__':
    main()
