"""
Database models for the battalion personnel portal.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Date, Text,
    ForeignKey, JSON, Index, UniqueConstraint, TypeDecorator
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
import enum

Base = declarative_base()


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        kwargs.setdefault("length", 50)
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums - Must be defined before models that use them
# ============================================================================

class AccountRole(str, enum.Enum):
    """Account roles for authorization."""
    RESERVIST = "reservist"
    STAFF = "staff"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class AccountStatus(str, enum.Enum):
    """Account status (login eligibility)."""
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    DEACTIVATED = "deactivated"


class ReservistStatus(str, enum.Enum):
    """Operational readiness of a reservist (distinct from account status)."""
    READY = "ready"
    STANDBY = "standby"
    RETIRED = "retired"


class DocumentStatus(str, enum.Enum):
    """Document validation status."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class RidsStatus(str, enum.Enum):
    """RIDS form lifecycle status."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class PromotionAction(str, enum.Enum):
    """Promotion history entry type."""
    PROMOTION = "Promotion"
    DEMOTION = "Demotion"
    INITIAL_COMMISSION = "Initial Commission"


class TrainingStatus(str, enum.Enum):
    """Training session status."""
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TrainingCategory(str, enum.Enum):
    """Training category, copied onto awarded hours."""
    LEADERSHIP = "Leadership"
    COMBAT = "Combat"
    TECHNICAL = "Technical"
    SEMINAR = "Seminar"
    OTHER = "Other"


class RegistrationStatus(str, enum.Enum):
    """Per-reservist training registration status."""
    REGISTERED = "registered"
    ATTENDED = "attended"
    NO_SHOW = "no_show"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CompletionStatus(str, enum.Enum):
    """Outcome recorded when a training is completed."""
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class NotificationType(str, enum.Enum):
    """Notification categories."""
    ACCOUNT = "account"
    DOCUMENT = "document"
    TRAINING = "training"
    ANNOUNCEMENT = "announcement"
    RIDS = "rids"
    SYSTEM = "system"


class AnnouncementPriority(str, enum.Enum):
    """Announcement priority."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# ============================================================================
# Organisation
# ============================================================================

class Company(Base):
    """Battalion company (ALPHA, BRAVO, HQ, ...)."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_company_active', 'is_active'),
    )


# ============================================================================
# Accounts
# ============================================================================

class Account(Base):
    """Login identity shared by every role."""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(EnumValue(AccountRole), nullable=False)
    status = Column(EnumValue(AccountStatus), default=AccountStatus.PENDING, nullable=False)
    rejection_reason = Column(Text, nullable=True)

    # Lockout
    is_locked = Column(Boolean, default=False, nullable=False)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime, nullable=True)

    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    approved_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    profile = relationship("Profile", back_populates="account", uselist=False, cascade="all, delete-orphan")
    reservist_details = relationship("ReservistDetail", back_populates="account", uselist=False, cascade="all, delete-orphan")
    staff_details = relationship("StaffDetail", back_populates="account", uselist=False, cascade="all, delete-orphan")
    refresh_tokens = relationship("RefreshToken", back_populates="account", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="account", cascade="all, delete-orphan")
    creator = relationship("Account", remote_side=[id], foreign_keys=[created_by])
    approver = relationship("Account", remote_side=[id], foreign_keys=[approved_by])

    __table_args__ = (
        Index('idx_account_role', 'role'),
        Index('idx_account_status', 'status'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def full_name(self) -> str:
        if not self.profile:
            return self.email
        parts = [self.profile.first_name, self.profile.last_name]
        return " ".join(p for p in parts if p) or self.email


class Profile(Base):
    """Personal information for an account."""
    __tablename__ = "profiles"

    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    profile_photo_url = Column(String(512), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="profile")


class ReservistDetail(Base):
    """Reservist-specific record (1:1 with a reservist account)."""
    __tablename__ = "reservist_details"

    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    service_number = Column(String(50), unique=True, index=True, nullable=False)  # AFPSN
    rank = Column(String(50), nullable=True)
    company = Column(String(20), ForeignKey("companies.code", ondelete="SET NULL"), nullable=True)
    reservist_status = Column(EnumValue(ReservistStatus), default=ReservistStatus.READY, nullable=False)
    mos = Column(String(50), nullable=True)  # Military occupational specialty
    date_of_birth = Column(Date, nullable=True)
    address = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="reservist_details")

    __table_args__ = (
        Index('idx_reservist_company', 'company'),
        Index('idx_reservist_rank', 'rank'),
    )


class StaffDetail(Base):
    """Staff-specific record (1:1 with a staff account)."""
    __tablename__ = "staff_details"

    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    employee_id = Column(String(50), nullable=True)
    position = Column(String(100), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="staff_details")
    assignments = relationship("StaffCompanyAssignment", back_populates="staff", cascade="all, delete-orphan")

    @property
    def assigned_companies(self) -> list:
        return sorted(a.company_code for a in self.assignments)


class StaffCompanyAssignment(Base):
    """Membership of a company in a staff member's assigned set."""
    __tablename__ = "staff_company_assignments"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff_details.account_id", ondelete="CASCADE"), nullable=False)
    company_code = Column(String(20), ForeignKey("companies.code", ondelete="CASCADE"), nullable=False)

    staff = relationship("StaffDetail", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint('staff_id', 'company_code', name='uq_staff_company'),
        Index('idx_assignment_company', 'company_code'),
    )


class AccountStatusHistory(Base):
    """Every account status change with its reason."""
    __tablename__ = "account_status_history"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    old_status = Column(EnumValue(AccountStatus), nullable=True)
    new_status = Column(EnumValue(AccountStatus), nullable=False)
    reason = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_status_history_account', 'account_id'),
    )


class RefreshToken(Base):
    """Refresh token storage for secure token rotation."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(255), unique=True, index=True, nullable=False)  # Hashed token
    device_info = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="refresh_tokens")

    __table_args__ = (
        Index('idx_refresh_account', 'account_id'),
    )


# ============================================================================
# Documents
# ============================================================================

class Document(Base):
    """Uploaded reservist document, validated by staff."""
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    reservist_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    document_type = Column(String(100), nullable=False)
    file_url = Column(String(512), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    status = Column(EnumValue(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    validated_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    validated_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, default=1, nullable=False)
    is_current = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    reservist = relationship("Account", foreign_keys=[reservist_id])
    validator = relationship("Account", foreign_keys=[validated_by])

    __table_args__ = (
        Index('idx_document_reservist', 'reservist_id'),
        Index('idx_document_status', 'status'),
        Index('idx_document_current', 'is_current'),
    )


# ============================================================================
# RIDS (Reservist Information Data Sheet)
# ============================================================================

class RidsForm(Base):
    """RIDS header: Section 2 personal data, biometrics and lifecycle metadata."""
    __tablename__ = "rids_forms"

    id = Column(Integer, primary_key=True, index=True)
    reservist_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), unique=True, nullable=False)

    # Section 2: personal information
    present_occupation = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    company_address = Column(Text, nullable=True)
    office_tel_nr = Column(String(50), nullable=True)
    home_address_street = Column(String(255), nullable=True)
    home_address_city = Column(String(100), nullable=True)
    home_address_province = Column(String(100), nullable=True)
    home_address_zip = Column(String(20), nullable=True)
    res_tel_nr = Column(String(50), nullable=True)
    mobile_tel_nr = Column(String(50), nullable=True)
    birth_place = Column(String(255), nullable=True)
    religion = Column(String(100), nullable=True)
    height_cm = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    marital_status = Column(String(50), nullable=True)
    sex = Column(String(20), nullable=True)
    fb_account = Column(String(255), nullable=True)
    special_skills = Column(Text, nullable=True)
    languages_spoken = Column(Text, nullable=True)

    # Biometrics
    photo_url = Column(String(512), nullable=True)
    thumbmark_url = Column(String(512), nullable=True)
    signature_url = Column(String(512), nullable=True)

    # Lifecycle
    version = Column(Integer, default=1, nullable=False)
    status = Column(EnumValue(RidsStatus), default=RidsStatus.DRAFT, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    submitted_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    reservist = relationship("Account", foreign_keys=[reservist_id])
    promotion_history = relationship("RidsPromotionHistory", cascade="all, delete-orphan")
    military_training = relationship("RidsMilitaryTraining", cascade="all, delete-orphan")
    awards = relationship("RidsAward", cascade="all, delete-orphan")
    dependents = relationship("RidsDependent", cascade="all, delete-orphan")
    education = relationship("RidsEducation", cascade="all, delete-orphan")
    active_duty = relationship("RidsActiveDuty", cascade="all, delete-orphan")
    unit_assignments = relationship("RidsUnitAssignment", cascade="all, delete-orphan")
    designations = relationship("RidsDesignation", cascade="all, delete-orphan")
    status_history = relationship("RidsStatusHistory", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_rids_status', 'status'),
    )


class RidsPromotionHistory(Base):
    """Section 3: promotion / demotion history."""
    __tablename__ = "rids_promotion_history"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_number = Column(Integer, nullable=False)
    rank = Column(String(50), nullable=False)
    date_of_rank = Column(Date, nullable=False)
    authority = Column(String(255), nullable=False)
    action_type = Column(EnumValue(PromotionAction), default=PromotionAction.PROMOTION, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsMilitaryTraining(Base):
    """Section 4: military schooling."""
    __tablename__ = "rids_military_training"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    training_name = Column(String(255), nullable=False)
    school = Column(String(255), nullable=True)
    date_graduated = Column(Date, nullable=True)
    certificate_number = Column(String(100), nullable=True)
    training_category = Column(String(50), nullable=True)
    duration_days = Column(Integer, nullable=True)
    verification_status = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsAward(Base):
    """Section 5: awards and decorations."""
    __tablename__ = "rids_awards"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    award_name = Column(String(255), nullable=False)
    authority = Column(String(255), nullable=True)
    date_awarded = Column(Date, nullable=True)
    citation = Column(Text, nullable=True)
    award_category = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsDependent(Base):
    """Section 6: dependents."""
    __tablename__ = "rids_dependents"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    relation = Column(String(50), nullable=False)
    full_name = Column(String(255), nullable=False)
    birthdate = Column(Date, nullable=True)
    contact_info = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsEducation(Base):
    """Section 7: civilian education."""
    __tablename__ = "rids_education"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    course = Column(String(255), nullable=False)
    school = Column(String(255), nullable=False)
    date_graduated = Column(Date, nullable=True)
    level = Column(String(50), nullable=True)
    honors = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsActiveDuty(Base):
    """Section 8: active duty tours."""
    __tablename__ = "rids_active_duty"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    unit = Column(String(255), nullable=False)
    purpose = Column(String(255), nullable=True)
    authority = Column(String(255), nullable=True)
    date_start = Column(Date, nullable=False)
    date_end = Column(Date, nullable=False)
    days_served = Column(Integer, nullable=True)
    efficiency_rating = Column(String(100), nullable=True)
    evaluator = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)
    verification_status = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsUnitAssignment(Base):
    """Section 9: unit assignments."""
    __tablename__ = "rids_unit_assignments"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    unit = Column(String(255), nullable=False)
    authority = Column(String(255), nullable=True)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=True)
    is_current = Column(Boolean, default=False, nullable=False)
    assignment_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsDesignation(Base):
    """Section 10: designations held."""
    __tablename__ = "rids_designations"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(String(255), nullable=False)
    authority = Column(String(255), nullable=True)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=True)
    is_current = Column(Boolean, default=False, nullable=False)
    responsibilities = Column(JSON, nullable=True)  # list of strings
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RidsStatusHistory(Base):
    """One row per RIDS status change."""
    __tablename__ = "rids_status_history"

    id = Column(Integer, primary_key=True, index=True)
    rids_id = Column(Integer, ForeignKey("rids_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(EnumValue(RidsStatus), nullable=True)
    new_status = Column(EnumValue(RidsStatus), nullable=False)
    action_type = Column(String(50), nullable=False)  # submit, approve, reject, revert, manual_change
    reason = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ============================================================================
# Training
# ============================================================================

class TrainingSession(Base):
    """Scheduled training; company null means system-wide."""
    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    company = Column(String(20), ForeignKey("companies.code", ondelete="SET NULL"), nullable=True)
    training_category = Column(EnumValue(TrainingCategory), default=TrainingCategory.OTHER, nullable=False)
    scheduled_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    location = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=True)  # null = unlimited
    prerequisites = Column(Text, nullable=True)
    status = Column(EnumValue(TrainingStatus), default=TrainingStatus.SCHEDULED, nullable=False)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    registrations = relationship("TrainingRegistration", back_populates="session", cascade="all, delete-orphan")
    creator = relationship("Account", foreign_keys=[created_by])

    __table_args__ = (
        Index('idx_training_status', 'status'),
        Index('idx_training_company', 'company'),
        Index('idx_training_scheduled', 'scheduled_date'),
    )


class TrainingRegistration(Base):
    """A reservist's registration to a session."""
    __tablename__ = "training_registrations"

    id = Column(Integer, primary_key=True, index=True)
    training_session_id = Column(Integer, ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False)
    reservist_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    status = Column(EnumValue(RegistrationStatus), default=RegistrationStatus.REGISTERED, nullable=False)
    attended_at = Column(DateTime, nullable=True)
    completion_status = Column(EnumValue(CompletionStatus), nullable=True)
    certificate_url = Column(String(512), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    session = relationship("TrainingSession", back_populates="registrations")
    reservist = relationship("Account", foreign_keys=[reservist_id])

    __table_args__ = (
        UniqueConstraint('training_session_id', 'reservist_id', name='uq_registration_session_reservist'),
        Index('idx_registration_reservist', 'reservist_id'),
    )


class TrainingHours(Base):
    """Append-only record of hours awarded for a completed training."""
    __tablename__ = "training_hours"

    id = Column(Integer, primary_key=True, index=True)
    reservist_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    training_session_id = Column(Integer, ForeignKey("training_sessions.id", ondelete="RESTRICT"), nullable=False)
    training_name = Column(String(255), nullable=False)
    training_category = Column(EnumValue(TrainingCategory), nullable=True)
    hours_completed = Column(Float, nullable=False)
    completion_status = Column(EnumValue(CompletionStatus), nullable=False)
    completion_date = Column(Date, nullable=False)
    certificate_url = Column(String(512), nullable=True)
    notes = Column(Text, nullable=True)
    awarded_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('reservist_id', 'training_session_id', name='uq_training_hours_reservist_session'),
        Index('idx_training_hours_reservist', 'reservist_id'),
    )


# ============================================================================
# Notifications, announcements, audit
# ============================================================================

class Notification(Base):
    """In-app notification for one account."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(EnumValue(NotificationType), default=NotificationType.SYSTEM, nullable=False)
    reference_id = Column(Integer, nullable=True)
    reference_table = Column(String(100), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="notifications")

    __table_args__ = (
        Index('idx_notification_user', 'user_id'),
        Index('idx_notification_read', 'user_id', 'is_read'),
    )


class Announcement(Base):
    """Announcement published by staff or administrators."""
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    priority = Column(EnumValue(AnnouncementPriority), default=AnnouncementPriority.NORMAL, nullable=False)
    target_companies = Column(JSON, nullable=True)  # null/empty = everyone
    target_roles = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    creator = relationship("Account", foreign_keys=[created_by])


class AuditLog(Base):
    """Audit log for security and compliance."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)  # e.g. "rids_approve", "login"
    resource_type = Column(String(50), nullable=True)  # e.g. "rids", "document", "account"
    resource_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(String(500), nullable=True)
    details = Column(JSON, nullable=True)  # old_values / new_values
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_user', 'user_id'),
        Index('idx_audit_action', 'action'),
    )
