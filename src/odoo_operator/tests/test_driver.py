import logging
import threading
import time
from unittest import TestCase

import kopf
import pykube

from odoo_operator.exception import ReconcileCancelled
from odoo_operator.k8s_operator import OperatorContext
from odoo_operator.k8s_operator.components.copier import COPIER_COMPONENT
from odoo_operator.k8s_operator.constants import LABEL_PARENT_KIND, LABEL_PARENT_NAME, LABEL_PARENT_NAMESPACE, \
    LABEL_COMPONENT
from odoo_operator.k8s_operator.crd.instance import reconcile_instance, odoo_instance_dependant_changed, \
    instance_locks, _InstanceLocks
from odoo_operator.k8s_operator.resources import OdooInstance
from odoo_operator.tests.testcase import TestCaseBase


class ReconcileDriverTestCase(TestCaseBase, TestCase):

    CONFIG = """
        configurationVersion: '1'
        reconcileTimeout: 30
        requeueDelay: 7
        """

    def setUp(self):
        super().setUp()
        OperatorContext.configure(self.config)
        OperatorContext.store = self.store
        OperatorContext.renderer = self.renderer
        self.logger = logging.getLogger(__name__)

        self.store.add(self.make_instance('root-1'))

    def tearDown(self):
        OperatorContext.store = None
        OperatorContext.renderer = None
        OperatorContext.config = None
        super().tearDown()

    def _reconcile(self, name='child-1'):
        reconcile_instance(namespace=self.NAMESPACE, name=name, logger=self.logger)

    def test_creates_job(self):
        self.store.add(self.make_instance('child-1', parent_hostname='root-1'))
        self._reconcile()

        self.assertEqual(['copier-child-1'], [job.name for job in self.store.created])
        child = self.store.lookup(OdooInstance, self.NAMESPACE, 'child-1')
        self.assertEqual('Unknown', child.get_status_condition('Created')['status'])

    def test_root_instance_is_skipped(self):
        self._reconcile('root-1')
        self.assertEqual([], self.store.mutations)

    def test_vanished_instance(self):
        self._reconcile('child-2')
        self.assertEqual([('get', 'OdooInstance', 'child-2')], self.store.calls)

    def test_parent_not_found_is_temporary(self):
        self.store.add(self.make_instance('child-1', parent_hostname='root-2'))
        with self.assertRaises(kopf.TemporaryError) as context_manager:
            self._reconcile()
        self.assertEqual(7, context_manager.exception.delay)

    def test_conflicting_parent_is_permanent(self):
        self.store.add(self.make_instance('root-1-clone', hostname='root-1'))
        self.store.add(self.make_instance('child-1', parent_hostname='root-1'))
        with self.assertRaises(kopf.PermanentError):
            self._reconcile()
        self.assertEqual([], self.store.mutations)

    def test_requeue_result_is_temporary(self):
        self.store.add(self.make_instance('child-1', parent_hostname='root-1'))
        self.store.fail_on['create'] = pykube.exceptions.HTTPError(409, 'copier-child-1 already exists')
        with self.assertRaises(kopf.TemporaryError) as context_manager:
            self._reconcile()
        self.assertEqual(7, context_manager.exception.delay)

    def test_cancelled_is_temporary(self):
        self.store.add(self.make_instance('child-1', parent_hostname='root-1'))
        self.store.fail_on['list'] = ReconcileCancelled('Reconciliation exceeded its deadline.')
        with self.assertRaises(kopf.TemporaryError):
            self._reconcile()

    def test_store_error_propagates(self):
        self.store.add(self.make_instance('child-1', parent_hostname='root-1'))
        self.store.fail_on['create'] = pykube.exceptions.HTTPError(500, 'internal error')
        with self.assertRaises(pykube.exceptions.HTTPError):
            self._reconcile()

    def test_missing_configuration(self):
        OperatorContext.config = None
        with self.assertRaises(RuntimeError):
            self._reconcile()

    def _job_body(self, **status):
        job = self.make_job('copier-child-1',
                            labels={
                                LABEL_PARENT_KIND: OdooInstance.kind,
                                LABEL_PARENT_NAME: 'child-1',
                                LABEL_PARENT_NAMESPACE: self.NAMESPACE,
                                LABEL_COMPONENT: COPIER_COMPONENT,
                            })
        job.obj['status'] = status
        self.store.add(job)
        return job.obj

    def test_job_success_event(self):
        self.store.add(
            self.make_instance('child-1',
                               parent_hostname='root-1',
                               conditions=[{
                                   'type': 'Created',
                                   'status': 'Unknown',
                                   'reason': 'CopyJobCreated',
                               }]))
        body = self._job_body(succeeded=1)

        odoo_instance_dependant_changed(name='copier-child-1',
                                        namespace=self.NAMESPACE,
                                        meta=body['metadata'],
                                        body=body,
                                        logger=self.logger)

        self.assertEqual([('update_status', 'OdooInstance', 'child-1'), ('delete', 'Job', 'copier-child-1')],
                         self.store.mutations)
        child = self.store.lookup(OdooInstance, self.NAMESPACE, 'child-1')
        self.assertTrue(child.is_copy_succeeded())

    def test_job_failure_event(self):
        self.store.add(
            self.make_instance('child-1',
                               parent_hostname='root-1',
                               conditions=[{
                                   'type': 'Created',
                                   'status': 'Unknown',
                                   'reason': 'CopyJobCreated',
                               }]))
        body = self._job_body(failed=1)

        odoo_instance_dependant_changed(name='copier-child-1',
                                        namespace=self.NAMESPACE,
                                        meta=body['metadata'],
                                        body=body,
                                        logger=self.logger)

        self.assertEqual([], self.store.mutations)
        self.assertIsNotNone(self.store.lookup(pykube.Job, self.NAMESPACE, 'copier-child-1'))

    def test_leftover_job_is_collected(self):
        self.store.add(
            self.make_instance('child-1',
                               parent_hostname='root-1',
                               conditions=[{
                                   'type': 'Created',
                                   'status': 'True',
                                   'reason': 'CopyJobSucceeded',
                               }]))
        body = self._job_body(succeeded=1)

        odoo_instance_dependant_changed(name='copier-child-1',
                                        namespace=self.NAMESPACE,
                                        meta=body['metadata'],
                                        body=body,
                                        logger=self.logger)

        self.assertEqual([('delete', 'Job', 'copier-child-1')], self.store.mutations)
        self.assertIsNone(self.store.lookup(pykube.Job, self.NAMESPACE, 'copier-child-1'))

    def test_job_without_parent_name_is_ignored(self):
        body = self._job_body(succeeded=1)
        del body['metadata']['labels'][LABEL_PARENT_NAME]

        odoo_instance_dependant_changed(name='copier-child-1',
                                        namespace=self.NAMESPACE,
                                        meta=body['metadata'],
                                        body=body,
                                        logger=self.logger)
        self.assertEqual([], self.store.calls)


class InstanceLocksTestCase(TestCase):

    def test_serializes_per_instance(self):
        entered = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with instance_locks.hold('ns', 'child-1'):
                order.append('first')
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=first)
        thread.start()
        entered.wait(5)

        # Other instances are not blocked
        with instance_locks.hold('ns', 'child-2'):
            order.append('other')

        release.set()
        with instance_locks.hold('ns', 'child-1'):
            order.append('second')
        thread.join(5)

        self.assertEqual(['first', 'other', 'second'], order)
        self.assertEqual(0, len(instance_locks))

    def test_entry_kept_while_waited_for(self):
        locks = _InstanceLocks()
        entered = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with locks.hold('ns', 'child-1'):
                entered.set()
                release.wait(5)
                order.append('first')

        def second():
            with locks.hold('ns', 'child-1'):
                order.append('second')

        thread_first = threading.Thread(target=first)
        thread_first.start()
        entered.wait(5)
        thread_second = threading.Thread(target=second)
        thread_second.start()

        # Both passes share one entry until the last of them is done
        entry = locks._entries[('ns', 'child-1')]
        waited = time.monotonic() + 5
        while entry.users < 2 and time.monotonic() < waited:
            time.sleep(0.01)
        self.assertEqual(2, entry.users)
        self.assertEqual(1, len(locks))

        release.set()
        thread_first.join(5)
        thread_second.join(5)

        self.assertEqual(['first', 'second'], order)
        self.assertEqual(0, len(locks))

    def test_entry_dropped_on_error(self):
        locks = _InstanceLocks()
        with self.assertRaises(ValueError):
            with locks.hold('ns', 'child-1'):
                raise ValueError('broken')
        self.assertEqual(0, len(locks))
