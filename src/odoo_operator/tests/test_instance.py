from unittest import TestCase

from parameterized import parameterized

from odoo_operator.k8s_operator.resources import OdooInstance, group_version_plural, http_status, job_counters
from odoo_operator.tests.testcase import TestCaseBase

import pykube
import requests


class OdooInstanceTestCase(TestCaseBase, TestCase):

    def test_accessors(self):
        instance = self.make_instance('child-1', hostname='child.example.com', parent_hostname='root-1')
        self.assertEqual('child.example.com', instance.hostname)
        self.assertEqual('root-1', instance.parent_hostname)
        self.assertEqual(self.CLUSTER, instance.cluster_name)
        self.assertEqual([], instance.status_conditions)

    def test_root_instance(self):
        instance = self.make_instance('root-1', cluster=None)
        self.assertIsNone(instance.parent_hostname)
        self.assertIsNone(instance.cluster_name)

    def test_group_version_plural(self):
        self.assertEqual(('instance.odoo.io', 'v1beta1', 'odooinstances'), OdooInstance.group_version_plural())
        self.assertEqual(('batch', 'v1', 'jobs'), group_version_plural(pykube.Job))
        self.assertEqual(('', 'v1', 'pods'), group_version_plural(pykube.Pod))

    def test_set_condition(self):
        instance = self.make_instance('child-1', parent_hostname='root-1')
        instance.set_status_condition_copy_job_creation_created()

        condition = instance.get_status_condition('Created')
        self.assertEqual('Unknown', condition['status'])
        self.assertEqual('CopyJobCreated', condition['reason'])
        self.assertRegex(condition['lastTransitionTime'], r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$')
        self.assertFalse(instance.is_copy_succeeded())

    def test_conditions_sorted_and_replaced(self):
        instance = self.make_instance('child-1',
                                      conditions=[
                                          {
                                              'type': 'Ready',
                                              'status': 'False'
                                          },
                                          {
                                              'type': 'Available',
                                              'status': 'True'
                                          },
                                      ])
        instance.set_status_condition_copy_job_creation_created()
        instance.set_status_condition_copy_job_success_created()

        self.assertEqual(['Available', 'Created', 'Ready'], [c['type'] for c in instance.status_conditions])
        self.assertEqual('True', instance.get_status_condition('Created')['status'])
        self.assertTrue(instance.is_copy_succeeded())

    def test_transition_time_kept_without_status_change(self):
        instance = self.make_instance('child-1',
                                      conditions=[{
                                          'type': 'Created',
                                          'status': 'Unknown',
                                          'reason': 'CopyJobCreated',
                                          'message': '',
                                          'lastTransitionTime': '2020-01-01T00:00:00Z',
                                      }])
        instance.set_status_condition('Created', 'Unknown', 'SomethingElse', 'Still going.')

        condition = instance.get_status_condition('Created')
        self.assertEqual('2020-01-01T00:00:00Z', condition['lastTransitionTime'])
        self.assertEqual('SomethingElse', condition['reason'])
        self.assertEqual('Still going.', condition['message'])

    @parameterized.expand([
        ('empty', {}, (0, 0)),
        ('succeeded', {'succeeded': 1}, (1, 0)),
        ('failed', {'failed': 2}, (0, 2)),
        ('both', {'succeeded': 1, 'failed': 4}, (1, 4)),
        ('active', {'active': 1}, (0, 0)),
    ])
    def test_job_counters(self, _, status, expected):
        job = self.make_job('copier-child-1')
        job.obj['status'] = status
        self.assertEqual(expected, job_counters(job))

    def test_job_counters_without_status(self):
        job = self.make_job('copier-child-1')
        del job.obj['status']
        self.assertEqual((0, 0), job_counters(job))

    def test_http_status(self):
        self.assertEqual(409, http_status(pykube.exceptions.HTTPError(409, 'conflict')))
        response = requests.Response()
        response.status_code = 404
        self.assertEqual(404, http_status(requests.HTTPError(response=response)))
        self.assertIsNone(http_status(requests.ConnectionError('refused')))
        self.assertIsNone(http_status(pykube.exceptions.ObjectDoesNotExist('gone')))
