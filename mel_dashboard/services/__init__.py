"""
Async mock services over the in-memory fixture store.

Usage:
    services = MelServices(delay_scale=0)
    queue = await services.approval_queue.get_approval_queue({"status": "submitted"})
"""

from .approval_queue import ApprovalQueueService
from .base import CrudService
from .bulk_import import BulkImportService
from .data_points import DataPointService
from .notifications import NotificationService
from .reference import (
    CountryService,
    IndicatorService,
    OrganizationService,
    ProjectService,
    UserService,
)
from .store import MockStore
from .validation_rules import ValidationRulesService


class MelServices:
    """One instance of every service, sharing a single store."""

    def __init__(self, store: MockStore | None = None, delay_scale: float | None = None):
        self.store = store or MockStore()
        self.countries = CountryService(self.store, delay_scale)
        self.projects = ProjectService(self.store, delay_scale)
        self.indicators = IndicatorService(self.store, delay_scale)
        self.users = UserService(self.store, delay_scale)
        self.organizations = OrganizationService(self.store, delay_scale)
        self.data_points = DataPointService(self.store, delay_scale)
        self.notifications = NotificationService(self.store, delay_scale)
        self.validation_rules = ValidationRulesService(self.store, delay_scale)
        self.approval_queue = ApprovalQueueService(self.data_points)
        self.bulk_import = BulkImportService(self.data_points)


__all__ = [
    "MelServices",
    "MockStore",
    "CrudService",
    "CountryService",
    "ProjectService",
    "IndicatorService",
    "UserService",
    "OrganizationService",
    "DataPointService",
    "NotificationService",
    "ValidationRulesService",
    "ApprovalQueueService",
    "BulkImportService",
]
