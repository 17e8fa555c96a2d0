"""
Training sessions, registrations, attendance and completion.

Session status: scheduled -> ongoing (first attendance) -> completed, or cancelled.
Registration status: registered -> attended | no_show -> completed.
Completing a session writes one training_hours row per awarded reservist;
those rows are never edited afterwards.
"""
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import (
    Account, CompletionStatus, NotificationType, RegistrationStatus, TrainingCategory,
    TrainingHours, TrainingRegistration, TrainingSession, TrainingStatus
)
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.logger import logger
from core.validators import parse_datetime, parse_enum
from services.company_scope import CompanyScope
from services.notification_service import NotificationService
import config


# Registrations holding a seat
ACTIVE_REGISTRATION = (RegistrationStatus.REGISTERED, RegistrationStatus.ATTENDED, RegistrationStatus.COMPLETED)

COMPLETION_TITLES = {
    CompletionStatus.PASSED: "Training Completed - Passed",
    CompletionStatus.FAILED: "Training Completed - Failed",
    CompletionStatus.PENDING: "Training Completed - Pending Review",
}

COMPLETION_MESSAGES = {
    CompletionStatus.PASSED: 'Congratulations! You have successfully completed "{title}" and earned {hours} training hours.',
    CompletionStatus.FAILED: 'You did not pass "{title}". Please review the requirements and consider retaking the training.',
    CompletionStatus.PENDING: 'Your completion of "{title}" is pending review. You will be notified of the final result.',
}

UPDATABLE_FIELDS = ("title", "description", "location", "prerequisites")


class TrainingService:
    """Training workflow for staff and reservists."""

    # ------------------------------------------------------------------
    # Staff: sessions
    # ------------------------------------------------------------------

    @staticmethod
    def get_session(db: Session, scope: CompanyScope, session_id: int) -> TrainingSession:
        """
        Raises:
            NotFoundError: no such session
            ForbiddenError: company session outside scope (system-wide sessions are visible)
        """
        session = db.query(TrainingSession).filter(TrainingSession.id == session_id).first()
        if not session:
            raise NotFoundError("Training session not found")
        scope.check(session.company, allow_global=True)
        return session

    @staticmethod
    def list_sessions(
        db: Session,
        scope: CompanyScope,
        status: Optional[str] = None,
        company: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[TrainingSession], int]:
        """Scoped sessions ordered by scheduled date (latest first)."""
        query = scope.narrow(db.query(TrainingSession), TrainingSession.company, company, allow_global=True)
        if status:
            query = query.filter(TrainingSession.status == parse_enum(status, TrainingStatus, "status"))
        total = query.count()
        sessions = (
            query.order_by(TrainingSession.scheduled_date.desc(), TrainingSession.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return sessions, total

    @staticmethod
    def registration_stats(db: Session, session_ids: Iterable[int]) -> Dict[int, Dict[str, int]]:
        """
        Per-session counters.

        registration_count counts registered/attended/completed seats,
        attended_count attended/completed. The outcome counters look at every
        registration; pending_count includes those with no completion status.
        """
        ids = list(session_ids)
        stats = defaultdict(lambda: {
            "registration_count": 0, "attended_count": 0, "completed_count": 0,
            "passed_count": 0, "failed_count": 0, "pending_count": 0,
        })
        if not ids:
            return {}
        registrations = db.query(TrainingRegistration).filter(
            TrainingRegistration.training_session_id.in_(ids)
        ).all()
        for reg in registrations:
            s = stats[reg.training_session_id]
            if reg.status in ACTIVE_REGISTRATION:
                s["registration_count"] += 1
            if reg.status in (RegistrationStatus.ATTENDED, RegistrationStatus.COMPLETED):
                s["attended_count"] += 1
            if reg.status == RegistrationStatus.COMPLETED:
                s["completed_count"] += 1
            if reg.completion_status == CompletionStatus.PASSED:
                s["passed_count"] += 1
            elif reg.completion_status == CompletionStatus.FAILED:
                s["failed_count"] += 1
            else:
                s["pending_count"] += 1
        return {sid: stats[sid] for sid in ids}

    @staticmethod
    def _apply_fields(session: TrainingSession, scope: CompanyScope, data: Dict[str, Any], creating: bool):
        if creating or "title" in data:
            if not data.get("title") or not str(data["title"]).strip():
                raise ValidationError("Title is required")
        if creating and not data.get("scheduled_date"):
            raise ValidationError("Scheduled date is required")

        if "company" in data:
            company = (data.get("company") or None)
            if company and company != session.company:
                msg = ("Cannot create training for company not assigned to you" if creating
                       else "Cannot change training to company not assigned to you")
                scope.check(company, message=msg)
            session.company = company

        if "capacity" in data:
            capacity = data.get("capacity")
            if capacity is not None:
                if isinstance(capacity, bool) or not isinstance(capacity, (int, float)) or capacity <= 0:
                    raise ValidationError("Capacity must be greater than 0")
                capacity = int(capacity)
            session.capacity = capacity

        if "scheduled_date" in data:
            try:
                scheduled = parse_datetime(data["scheduled_date"], "scheduled_date")
            except ValidationError:
                raise ValidationError("Invalid scheduled date")
            if scheduled is None:
                raise ValidationError("Invalid scheduled date")
            session.scheduled_date = scheduled
        if "end_date" in data:
            try:
                session.end_date = parse_datetime(data["end_date"], "end_date")
            except ValidationError:
                raise ValidationError("Invalid end date")
        if session.end_date and session.scheduled_date and session.end_date < session.scheduled_date:
            raise ValidationError("End date must be after scheduled date")

        if data.get("training_category"):
            session.training_category = parse_enum(data["training_category"], TrainingCategory, "training_category")
        elif creating:
            session.training_category = TrainingCategory.OTHER

        for field in UPDATABLE_FIELDS:
            if field in data:
                value = data[field]
                setattr(session, field, value.strip() if isinstance(value, str) else value)

    @staticmethod
    def create(db: Session, actor: Account, scope: CompanyScope, data: Dict[str, Any]) -> TrainingSession:
        session = TrainingSession(status=TrainingStatus.SCHEDULED, created_by=actor.id)
        TrainingService._apply_fields(session, scope, data, creating=True)
        db.add(session)
        db.commit()
        logger.info(f"Training session {session.id} '{session.title}' created by {actor.id}")
        return session

    @staticmethod
    def update(db: Session, actor: Account, scope: CompanyScope, session_id: int,
               data: Dict[str, Any]) -> TrainingSession:
        """
        Edit a session. Status may move between scheduled, ongoing and cancelled;
        completion only happens through complete().
        """
        session = TrainingService.get_session(db, scope, session_id)
        if session.status == TrainingStatus.COMPLETED:
            raise ValidationError("Completed training sessions cannot be modified")
        TrainingService._apply_fields(session, scope, data, creating=False)
        if data.get("status"):
            new_status = parse_enum(data["status"], TrainingStatus, "status")
            if new_status == TrainingStatus.COMPLETED:
                raise ValidationError("Use the complete action to finish a training session")
            session.status = new_status
        db.commit()
        logger.info(f"Training session {session.id} updated by {actor.id}")
        return session

    @staticmethod
    def delete(db: Session, actor: Account, scope: CompanyScope, session_id: int):
        """
        Delete a session and its registrations.

        Raises:
            ForbiddenError: session completed or hours already awarded
        """
        session = TrainingService.get_session(db, scope, session_id)
        if session.status == TrainingStatus.COMPLETED:
            raise ForbiddenError(
                "Cannot delete completed training sessions. These records are required for promotion analytics."
            )
        has_hours = db.query(TrainingHours).filter(TrainingHours.training_session_id == session.id).first()
        if has_hours:
            raise ForbiddenError(
                "Cannot delete training with awarded hours. These records are required for promotion analytics."
            )
        db.delete(session)
        db.commit()
        logger.info(f"Training session {session_id} deleted by {actor.id}")

    # ------------------------------------------------------------------
    # Staff: attendance and completion
    # ------------------------------------------------------------------

    @staticmethod
    def registrations(db: Session, session_id: int) -> List[TrainingRegistration]:
        return (
            db.query(TrainingRegistration)
            .filter(TrainingRegistration.training_session_id == session_id)
            .order_by(TrainingRegistration.created_at.asc(), TrainingRegistration.id.asc())
            .all()
        )

    @staticmethod
    def mark_attendance(db: Session, actor: Account, scope: CompanyScope, session_id: int,
                        reservist_ids: Any) -> Dict[str, Any]:
        """
        Record who attended.

        Listed registrants in registered/no_show become attended; every other
        registered or attended registrant becomes no_show. A scheduled session
        moves to ongoing.

        Returns:
            {"marked": [...registrations], "no_show": [...registrations]}
        """
        if not isinstance(reservist_ids, list):
            raise ValidationError("Invalid input: reservist_ids must be an array")
        if not reservist_ids:
            raise ValidationError("No reservists provided")

        session = TrainingService.get_session(db, scope, session_id)
        if session.status in (TrainingStatus.COMPLETED, TrainingStatus.CANCELLED):
            raise ValidationError(f"Cannot mark attendance for a {session.status.value} training session")

        registrations = [
            r for r in TrainingService.registrations(db, session.id)
            if r.status != RegistrationStatus.CANCELLED
        ]
        if not registrations:
            raise NotFoundError("No registrations found for this training")

        by_reservist = {r.reservist_id: r for r in registrations}
        invalid = [str(rid) for rid in reservist_ids if rid not in by_reservist]
        if invalid:
            logger.warning(f"Invalid reservist IDs for attendance on session {session.id}: {invalid}")
            raise ValidationError(f"Invalid reservist IDs: {', '.join(invalid)}")

        now = datetime.utcnow()
        attended_ids = set(reservist_ids)
        marked, no_show = [], []
        for reg in registrations:
            if reg.reservist_id in attended_ids:
                if reg.status in (RegistrationStatus.REGISTERED, RegistrationStatus.NO_SHOW):
                    reg.status = RegistrationStatus.ATTENDED
                    reg.attended_at = now
                    marked.append(reg)
            elif reg.status in (RegistrationStatus.REGISTERED, RegistrationStatus.ATTENDED):
                reg.status = RegistrationStatus.NO_SHOW
                reg.attended_at = None
                no_show.append(reg)

        if session.status == TrainingStatus.SCHEDULED:
            session.status = TrainingStatus.ONGOING
        db.commit()
        logger.info(
            f"Attendance on session {session.id} by {actor.id}: {len(marked)} attended, {len(no_show)} no-show"
        )
        return {"marked": marked, "no_show": no_show}

    @staticmethod
    def _parse_awards(awards: Any) -> List[Dict[str, Any]]:
        if not isinstance(awards, list) or not awards:
            raise ValidationError("Invalid input: awards must be a non-empty array")
        parsed, seen = [], set()
        for award in awards:
            if not isinstance(award, dict) or not award.get("reservist_id"):
                raise ValidationError("Missing reservist_id in award")
            hours = award.get("hours_completed")
            if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= 0:
                raise ValidationError("hours_completed must be a positive number")
            if hours > config.MAX_TRAINING_HOURS:
                raise ValidationError(f"hours_completed cannot exceed {config.MAX_TRAINING_HOURS:g} hours")
            try:
                completion = CompletionStatus(award.get("completion_status"))
            except ValueError:
                raise ValidationError("Invalid completion_status")
            if award["reservist_id"] in seen:
                raise ValidationError(f"Duplicate reservist_id in awards: {award['reservist_id']}")
            seen.add(award["reservist_id"])
            parsed.append({
                "reservist_id": award["reservist_id"],
                "hours_completed": float(hours),
                "completion_status": completion,
                "certificate_url": award.get("certificate_url") or None,
                "notes": award.get("notes") or None,
            })
        return parsed

    @staticmethod
    def complete(db: Session, actor: Account, scope: CompanyScope, session_id: int, awards: Any,
                 training_category: Optional[str] = None) -> Dict[str, Any]:
        """
        Award hours, notify each reservist and mark the session completed.

        Raises:
            ValidationError: bad award data, unregistered reservists or a cancelled session
            ConflictError: hours were already awarded to a reservist for this session
        """
        parsed = TrainingService._parse_awards(awards)
        session = TrainingService.get_session(db, scope, session_id)
        if session.status == TrainingStatus.CANCELLED:
            raise ValidationError("Cannot complete a cancelled training session")

        category = (
            parse_enum(training_category, TrainingCategory, "training_category")
            if training_category else session.training_category
        )

        ids = [a["reservist_id"] for a in parsed]
        registrations = {
            r.reservist_id: r for r in db.query(TrainingRegistration).filter(
                TrainingRegistration.training_session_id == session.id,
                TrainingRegistration.reservist_id.in_(ids),
                TrainingRegistration.status != RegistrationStatus.CANCELLED
            ).all()
        }
        missing = [str(rid) for rid in ids if rid not in registrations]
        if missing:
            raise ValidationError(f"Reservists not registered for this training: {', '.join(missing)}")

        already = [
            str(h.reservist_id) for h in db.query(TrainingHours).filter(
                TrainingHours.training_session_id == session.id,
                TrainingHours.reservist_id.in_(ids)
            ).all()
        ]
        if already:
            logger.warning(f"Re-award attempt on session {session.id} for reservists {already}")
            raise ConflictError(f"Training hours already awarded for reservists: {', '.join(already)}")

        today = datetime.utcnow().date()
        hours_rows, notifications = [], []
        for award in parsed:
            reg = registrations[award["reservist_id"]]
            reg.status = RegistrationStatus.COMPLETED
            reg.completion_status = award["completion_status"]
            reg.certificate_url = award["certificate_url"]
            reg.notes = award["notes"]

            hours = TrainingHours(
                reservist_id=award["reservist_id"],
                training_session_id=session.id,
                training_name=session.title,
                training_category=category,
                hours_completed=award["hours_completed"],
                completion_status=award["completion_status"],
                completion_date=today,
                certificate_url=award["certificate_url"],
                notes=award["notes"],
                awarded_by=actor.id,
            )
            db.add(hours)
            hours_rows.append(hours)

            message = COMPLETION_MESSAGES[award["completion_status"]].format(
                title=session.title, hours=f"{award['hours_completed']:g}"
            )
            notifications.append(NotificationService.notify(
                db, award["reservist_id"], COMPLETION_TITLES[award["completion_status"]], message,
                NotificationType.TRAINING, reference_id=session.id, reference_table="training_sessions"
            ))

        session.status = TrainingStatus.COMPLETED
        db.commit()
        logger.info(f"Training session {session.id} completed by {actor.id}: {len(hours_rows)} awards")
        return {"session": session, "hours": hours_rows, "notifications_sent": len(notifications)}

    # ------------------------------------------------------------------
    # Reservist self-service
    # ------------------------------------------------------------------

    @staticmethod
    def _reservist_company(reservist: Account) -> Optional[str]:
        return reservist.reservist_details.company if reservist.reservist_details else None

    @staticmethod
    def available_for(db: Session, reservist: Account) -> List[TrainingSession]:
        """Upcoming sessions for the reservist's company plus system-wide ones."""
        company = TrainingService._reservist_company(reservist)
        query = db.query(TrainingSession).filter(
            TrainingSession.status.in_([TrainingStatus.SCHEDULED, TrainingStatus.ONGOING])
        )
        if company:
            query = query.filter(or_(TrainingSession.company == company, TrainingSession.company.is_(None)))
        else:
            query = query.filter(TrainingSession.company.is_(None))
        return query.order_by(TrainingSession.scheduled_date.asc()).all()

    @staticmethod
    def registrations_for(db: Session, reservist_id: int) -> List[TrainingRegistration]:
        return (
            db.query(TrainingRegistration)
            .filter(TrainingRegistration.reservist_id == reservist_id)
            .order_by(TrainingRegistration.created_at.desc())
            .all()
        )

    @staticmethod
    def register(db: Session, reservist: Account, session_id: int) -> TrainingRegistration:
        """
        Register a reservist for an open session.

        Raises:
            NotFoundError: session missing or not open to the reservist's company
            ValidationError: session cancelled or completed
            ConflictError: already registered, or the session is full
        """
        session = db.query(TrainingSession).filter(TrainingSession.id == session_id).first()
        company = TrainingService._reservist_company(reservist)
        if not session or (session.company is not None and session.company != company):
            raise NotFoundError("Training session not found")
        if session.status in (TrainingStatus.CANCELLED, TrainingStatus.COMPLETED):
            raise ValidationError(f"Cannot register for a {session.status.value} training session")

        existing = db.query(TrainingRegistration).filter(
            TrainingRegistration.training_session_id == session.id,
            TrainingRegistration.reservist_id == reservist.id
        ).first()
        if existing and existing.status != RegistrationStatus.CANCELLED:
            raise ConflictError("Already registered for this training")

        if session.capacity is not None:
            taken = db.query(TrainingRegistration).filter(
                TrainingRegistration.training_session_id == session.id,
                TrainingRegistration.status.in_(ACTIVE_REGISTRATION)
            ).count()
            if taken >= session.capacity:
                raise ConflictError("Training session is full")

        if existing:
            existing.status = RegistrationStatus.REGISTERED
            existing.attended_at = None
            registration = existing
        else:
            registration = TrainingRegistration(
                training_session_id=session.id,
                reservist_id=reservist.id,
                status=RegistrationStatus.REGISTERED,
            )
            db.add(registration)
        db.commit()
        logger.info(f"Reservist {reservist.id} registered for training session {session.id}")
        return registration

    @staticmethod
    def hours_for(db: Session, reservist_id: int) -> Tuple[List[TrainingHours], float]:
        """Awarded hours, newest first, with the total of passed hours."""
        rows = (
            db.query(TrainingHours)
            .filter(TrainingHours.reservist_id == reservist_id)
            .order_by(TrainingHours.completion_date.desc(), TrainingHours.id.desc())
            .all()
        )
        total = sum(r.hours_completed for r in rows if r.completion_status == CompletionStatus.PASSED)
        return rows, total
