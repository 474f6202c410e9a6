import json
import logging
import os
import shutil
import tempfile
from unittest import TestCase

import structlog
from parameterized import parameterized

from odoo_operator.exception import UsageError
from odoo_operator.logging import init_logging, _ConsoleRenderer


class ConsoleRendererTestCase(TestCase):

    @parameterized.expand([
        ('plain', {'event': 'Creating copier job.', 'level': 'info'}, '    INFO: Creating copier job.'),
        ('context', {
            'event': 'Creating copier job.',
            'level': 'warning',
            'name': 'child-1',
            'namespace': 'ns',
        }, ' WARNING: Creating copier job. namespace=ns name=child-1'),
        ('exception', {
            'event': 'Uncaught exception',
            'level': 'error',
            'exception': 'Traceback (most recent call last):',
        }, '   ERROR: Uncaught exception\nTraceback (most recent call last):'),
    ])
    def test_render(self, _, event_dict, expected):
        self.assertEqual(expected, _ConsoleRenderer(colors=False)(None, None, event_dict))


class InitLoggingTestCase(TestCase):

    def setUp(self):
        self.log_directory = tempfile.mkdtemp(prefix='odoo-operator-test_')

    def tearDown(self):
        init_logging(console_level=logging.WARN, console_formatter='console-plain')
        shutil.rmtree(self.log_directory)

    @parameterized.expand([
        ('console', {'console_formatter': 'legacy'}),
        ('logfile', {'logfile_formatter': 'yaml'}),
    ])
    def test_unknown_formatter(self, _, kwargs):
        with self.assertRaises(UsageError):
            init_logging(**kwargs)

    def test_logfile(self):
        logfile = os.path.join(self.log_directory, 'odoo-operator.log')
        init_logging(logfile=logfile, console_level='WARNING', console_formatter='console-plain')

        structlog.get_logger().info('Copier job succeeded.', namespace='ns', name='child-1')
        logging.getLogger('odoo_operator.tests').debug('Not in the log file.')
        for handler in logging.getLogger().handlers:
            handler.flush()

        with open(logfile, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
        self.assertEqual(1, len(lines))
        event = json.loads(lines[0])
        self.assertEqual('Copier job succeeded.', event['event'])
        self.assertEqual('info', event['level'])
        self.assertEqual('child-1', event['name'])
        self.assertIn('timestamp', event)
