#!/usr/bin/env python
# -*- encoding: utf-8 -*-


class OperatorException(Exception):
    pass


class UsageError(OperatorException, RuntimeError):
    pass


class InternalError(OperatorException, RuntimeError):
    pass


class ConfigurationError(OperatorException, RuntimeError):
    pass


class ReconcileError(OperatorException):
    # Tells the driver whether the pass should be retried after the requeue delay
    requeue = False


class ParentNotFound(ReconcileError, LookupError):
    requeue = True


class ConflictingParent(ReconcileError):
    pass


class TemplateError(ReconcileError):
    pass


class ReconcileCancelled(ReconcileError, TimeoutError):
    requeue = True
