"""Module-level service singletons.

The record store is chosen the same way the task queue is: PostgreSQL
when DATABASE_URL is configured, in-memory otherwise.  Routers and the
worker import the services from here.
"""

from __future__ import annotations

from learnhub.db.engine import async_session_factory
from learnhub.repos.store import InMemoryRecordStore, RecordStore
from learnhub.services.admission import AdmissionController
from learnhub.services.aggregates import AggregateRecalculator
from learnhub.services.catalog import CatalogService
from learnhub.services.enrollment_service import EnrollmentStateMachine
from learnhub.services.events import EventBus
from learnhub.services.review_service import ReviewService
from learnhub.services.statistics import StatisticsReporter
from learnhub.services.task_queue import task_queue

if async_session_factory is not None:
    from learnhub.repos.pg_store import PgRecordStore

    record_store: RecordStore = PgRecordStore(async_session_factory)
else:
    record_store = InMemoryRecordStore()

event_bus = EventBus()

catalog = CatalogService(record_store)
admission = AdmissionController(record_store)
enrollments = EnrollmentStateMachine(record_store)
reviews = ReviewService(record_store, event_bus)
statistics = StatisticsReporter(record_store)

aggregates = AggregateRecalculator(record_store, task_queue)
aggregates.register(event_bus)
