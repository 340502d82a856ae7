"""Auto-enrollment guard and enrollment progress mirroring."""

from uuid import UUID

from coursetrack.core.exceptions import EnrollmentRequiredError
from coursetrack.core.logging import get_logger
from coursetrack.courses.models import Course
from coursetrack.enrollments.models import Enrollment, EnrollmentSource
from coursetrack.enrollments.store import EnrollmentStore


logger = get_logger(__name__)


class EnrollmentService:
    """Gatekeeper for course access."""

    def __init__(self, store: EnrollmentStore):
        self.store = store

    async def ensure_enrollment(self, user_id: UUID, course: Course) -> Enrollment:
        """Return the learner's enrollment, creating one for free courses.

        Concurrent first access on a free course yields a single enrollment:
        creation is an insert-if-not-exists and the loser reads the winner.

        Raises:
            EnrollmentRequiredError: Priced course without enrollment,
                suspended or refunded enrollment, or auto-enrollment failure.
        """
        enrollment = await self.store.find_by_user_and_course(user_id, course.id)

        if enrollment is None:
            if not course.is_free:
                logger.info(
                    "enrollment_required",
                    user_id=str(user_id),
                    course_id=course.id,
                )
                raise EnrollmentRequiredError(
                    "You must be enrolled in this course", course_id=course.id
                )

            try:
                enrollment, created = await self.store.enroll_user(
                    user_id, course.id, source=EnrollmentSource.AUTO
                )
            except Exception as e:
                logger.error(
                    "auto_enrollment_failed",
                    user_id=str(user_id),
                    course_id=course.id,
                    error=str(e),
                )
                raise EnrollmentRequiredError(
                    "Unable to access course. Please try again.", course_id=course.id
                ) from e

            if created:
                logger.info("user_auto_enrolled", user_id=str(user_id), course_id=course.id)

        if not enrollment.has_access:
            logger.warning(
                "enrollment_access_denied",
                user_id=str(user_id),
                course_id=course.id,
                status=enrollment.status,
            )
            raise EnrollmentRequiredError(
                "Course access is suspended. Please contact support.",
                course_id=course.id,
                status=enrollment.status,
            )

        return enrollment

    async def mirror_progress(self, user_id: UUID, course_id: str, progress: int) -> None:
        """Copy overall progress onto the enrollment, best effort.

        The progress document is the source of truth, so a failure here is
        logged and swallowed.
        """
        try:
            await self.store.update_progress(user_id, course_id, progress)
        except Exception as e:
            logger.warning(
                "enrollment_progress_sync_failed",
                user_id=str(user_id),
                course_id=course_id,
                progress=progress,
                error=str(e),
            )
