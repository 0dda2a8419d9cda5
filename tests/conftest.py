from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.shared.utils.circuit_breaker import CircuitBreakerRegistry
from src.shared.utils.retry import RetryExecutor
from src.templates.application.services.template_lifecycle_service import TemplateLifecycleService
from src.templates.dependencies import PROVIDER_FAILURE_EXCEPTIONS
from src.templates.domain.value_objects.provider import (
    ProviderDecision,
    ProviderStatusReport,
    SubmissionReceipt,
)
from src.templates.domain.value_objects.template_status import TemplateStatus


class ManualClock:
    """Monotonic seconds, advanced by hand."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class WallClock:
    """Timezone-aware datetimes, advanced by hand."""

    def __init__(self, start=datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class RecordedSleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class InMemoryTemplateRepository:
    def __init__(self):
        self.items = {}

    async def get_by_id(self, template_id):
        return self.items.get(template_id)

    async def find_active_by_name(self, tenant_id, name):
        return [
            t for t in self.items.values()
            if t.tenant_id == tenant_id and t.name == name and not t.status.is_terminal
        ]

    async def list_children(self, parent_template_id):
        return [t for t in self.items.values() if t.parent_template_id == parent_template_id]

    async def list_pending(self, limit=50):
        pending = [t for t in self.items.values() if t.status is TemplateStatus.PENDING]
        return sorted(pending, key=lambda t: t.submitted_at)[:limit]

    async def add(self, template):
        self.items[template.id] = template
        return template

    async def update(self, template):
        self.items[template.id] = template
        return template

    async def delete(self, template_id):
        self.items.pop(template_id, None)


class ScriptedProvider:
    """Plays back queued outcomes: exceptions are raised, anything else is returned."""

    def __init__(self):
        self.submit_script = []
        self.poll_script = []
        self.submissions = []
        self.polls = []

    async def submit(self, submission):
        self.submissions.append(submission)
        return self._next(self.submit_script, SubmissionReceipt(f"prov-{len(self.submissions)}"))

    async def poll(self, provider_template_id):
        self.polls.append(provider_template_id)
        return self._next(
            self.poll_script,
            ProviderStatusReport(provider_template_id, ProviderDecision.PENDING),
        )

    @staticmethod
    def _next(script, default):
        if not script:
            return default
        outcome = script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingAuditSink:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    async def record(self, event):
        if self.fail:
            raise RuntimeError("audit store down")
        self.events.append(event)

    @property
    def event_types(self):
        return [e.event_type for e in self.events]


class FakeCampaignUsage:
    def __init__(self):
        self.campaigns = {}

    async def active_campaigns_using(self, tenant_id, template_id):
        return self.campaigns.get(template_id, [])


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def wall_clock():
    return WallClock()


@pytest.fixture
def sleeps():
    return RecordedSleeps()


@pytest.fixture
def breakers(clock):
    return CircuitBreakerRegistry(
        failure_threshold=5,
        reset_timeout=60.0,
        failure_exceptions=PROVIDER_FAILURE_EXCEPTIONS,
        clock=clock,
    )


@pytest.fixture
def retry_executor(breakers, sleeps):
    return RetryExecutor(breakers, sleep=sleeps, rng=lambda: 0.0)


@pytest.fixture
def repo():
    return InMemoryTemplateRepository()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def campaigns():
    return FakeCampaignUsage()


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def service(repo, provider, retry_executor, campaigns, audit, wall_clock):
    return TemplateLifecycleService(
        repo,
        provider,
        retry_executor,
        campaign_usage=campaigns,
        audit_sink=audit,
        clock=wall_clock,
    )
