"""Tests for certificate issuance."""

import asyncio
import re
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from cassandra import OperationTimedOut

from learnpath.catalog.service import CourseNotFoundError
from learnpath.certificates.service import (
    CertificateNotFoundError,
    CertificateService,
    generate_certificate_number,
)
from learnpath.core.exceptions import CourseNotCompleteError


@pytest.fixture
def certificate_service(services: SimpleNamespace) -> CertificateService:
    return services.certificate_service


@pytest.fixture
def user_id(store) -> UUID:
    return store.add_user()


@pytest.fixture
def course(store) -> SimpleNamespace:
    course_id = store.add_course()
    lessons = [store.add_lesson(course_id) for _ in range(3)]
    return SimpleNamespace(course_id=course_id, lessons=lessons)


async def complete_lessons(services, user_id, lesson_ids):
    for lesson_id in lesson_ids:
        await services.progress_service.record_lesson_progress(
            user_id, lesson_id, is_completed=True
        )


def test_certificate_number_format():
    """Prefix plus eight uppercase hex characters."""
    number = generate_certificate_number("CERT")

    assert re.fullmatch(r"CERT-[0-9A-F]{8}", number)


class TestIssueCertificate:
    """Tests for issue_certificate_if_eligible."""

    @pytest.mark.asyncio
    async def test_issues_after_full_completion(
        self, certificate_service, services, store, user_id, course
    ):
        await complete_lessons(services, user_id, course.lessons)

        certificate = await certificate_service.issue_certificate_if_eligible(
            user_id, course.course_id
        )

        assert certificate.user_id == user_id
        assert certificate.course_id == course.course_id
        assert certificate.certificate_number.startswith("CERT-")
        assert certificate.certificate_id in store.certificates_by_id
        # Completing the last lesson unlocks first_course
        assert (user_id, "first_course") in store.unlocks

    @pytest.mark.asyncio
    async def test_repeat_returns_same_certificate(
        self, certificate_service, services, store, user_id, course
    ):
        await complete_lessons(services, user_id, course.lessons)

        first = await certificate_service.issue_certificate_if_eligible(user_id, course.course_id)
        second = await certificate_service.issue_certificate_if_eligible(user_id, course.course_id)

        assert second.certificate_id == first.certificate_id
        assert second.certificate_number == first.certificate_number
        assert len(store.certificates) == 1

    @pytest.mark.asyncio
    async def test_retry_restores_lookup_by_id(
        self, certificate_service, services, store, user_id, course
    ):
        await complete_lessons(services, user_id, course.lessons)
        store.fail_next(f"INSERT INTO {store.keyspace}.certificates_by_id", OperationTimedOut())

        with pytest.raises(OperationTimedOut):
            await certificate_service.issue_certificate_if_eligible(user_id, course.course_id)
        assert not store.certificates_by_id

        certificate = await certificate_service.issue_certificate_if_eligible(
            user_id, course.course_id
        )
        found = await certificate_service.get_certificate(certificate.certificate_id)

        assert found.certificate_number == certificate.certificate_number

    @pytest.mark.asyncio
    async def test_concurrent_requests_converge(
        self, certificate_service, services, store, user_id, course
    ):
        await complete_lessons(services, user_id, course.lessons)

        results = await asyncio.gather(
            *(
                certificate_service.issue_certificate_if_eligible(user_id, course.course_id)
                for _ in range(3)
            )
        )

        assert len({c.certificate_number for c in results}) == 1
        assert len(store.certificates) == 1

    @pytest.mark.asyncio
    async def test_incomplete_course_rejected(
        self, certificate_service, services, store, user_id, course
    ):
        await complete_lessons(services, user_id, course.lessons[:2])

        with pytest.raises(CourseNotCompleteError):
            await certificate_service.issue_certificate_if_eligible(user_id, course.course_id)

        assert store.certificates == {}

    @pytest.mark.asyncio
    async def test_course_without_lessons_rejected(self, certificate_service, store, user_id):
        empty_course = store.add_course()

        with pytest.raises(CourseNotCompleteError):
            await certificate_service.issue_certificate_if_eligible(user_id, empty_course)

    @pytest.mark.asyncio
    async def test_unknown_course(self, certificate_service, user_id):
        with pytest.raises(CourseNotFoundError):
            await certificate_service.issue_certificate_if_eligible(user_id, uuid4())


class TestCertificateReads:
    """Tests for certificate lookups."""

    @pytest.mark.asyncio
    async def test_get_by_id_and_list(self, certificate_service, services, user_id, course):
        await complete_lessons(services, user_id, course.lessons)
        issued = await certificate_service.issue_certificate_if_eligible(user_id, course.course_id)

        fetched = await certificate_service.get_certificate(issued.certificate_id)
        listed = await certificate_service.list_user_certificates(user_id)

        assert fetched.certificate_number == issued.certificate_number
        assert [c.certificate_id for c in listed] == [issued.certificate_id]

    @pytest.mark.asyncio
    async def test_unknown_certificate(self, certificate_service):
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.get_certificate(uuid4())
