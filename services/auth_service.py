"""
Authentication service: account creation, login with lockout, and token rotation.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func

from database.models import (
    Account, AccountRole, AccountStatus, Profile, ReservistDetail, StaffDetail,
    StaffCompanyAssignment, RefreshToken, Company, ReservistStatus
)
from auth.security import (
    verify_password, get_password_hash, validate_password, create_access_token,
    create_refresh_token, decode_refresh_token, generate_refresh_token_hash
)
from core.exceptions import AuthenticationError, ConflictError, ValidationError
from core.logger import logger
import config


class AuthService:
    """Service for authentication operations."""

    @staticmethod
    def get_account_by_email(db: Session, email: str) -> Optional[Account]:
        return db.query(Account).filter(func.lower(Account.email) == email.strip().lower()).first()

    @staticmethod
    def get_account_by_id(db: Session, account_id: int) -> Optional[Account]:
        return db.query(Account).filter(Account.id == account_id).first()

    @staticmethod
    def create_account(
        db: Session,
        email: str,
        password: str,
        role: AccountRole,
        first_name: str,
        last_name: str,
        middle_name: Optional[str] = None,
        phone: Optional[str] = None,
        status: AccountStatus = AccountStatus.ACTIVE,
        created_by: Optional[int] = None,
        commit: bool = True,
    ) -> Account:
        """
        Create an account with its profile.

        Args:
            db: Database session
            email: Login email (unique, case-insensitive)
            password: Plain text password, checked against the password policy
            role: Account role; never changes afterwards
            first_name: Given name
            last_name: Family name
            middle_name: Optional middle name
            phone: Optional phone number
            status: Initial account status
            created_by: Creating administrator
            commit: Commit immediately; False lets the caller add role details first

        Returns:
            Created Account

        Raises:
            ValidationError: password policy violation
            ConflictError: email already registered
        """
        is_valid, error_message = validate_password(password)
        if not is_valid:
            raise ValidationError(error_message)

        if AuthService.get_account_by_email(db, email):
            raise ConflictError("An account with this email already exists")

        account = Account(
            email=email.strip().lower(),
            hashed_password=get_password_hash(password),
            role=role,
            status=status,
            created_by=created_by,
        )
        account.profile = Profile(
            first_name=first_name.strip(),
            middle_name=middle_name.strip() if middle_name else None,
            last_name=last_name.strip(),
            phone=phone,
        )
        db.add(account)
        if commit:
            db.commit()
            logger.info(f"Created account: {account.email} (role: {role.value})")
        else:
            db.flush()
        return account

    @staticmethod
    def register_reservist(
        db: Session,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        service_number: str,
        company: Optional[str] = None,
        rank: Optional[str] = None,
        middle_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Account:
        """
        Self-registration: a reservist account starts pending until an admin approves it.

        Raises:
            ValidationError: unknown or inactive company
            ConflictError: duplicate email or service number
        """
        service_number = service_number.strip()
        if db.query(ReservistDetail).filter(ReservistDetail.service_number == service_number).first():
            raise ConflictError("A reservist with this service number already exists")

        if company:
            company = company.strip().upper()
            exists = db.query(Company).filter(Company.code == company, Company.is_active == True).first()
            if not exists:
                raise ValidationError("Invalid company")

        account = AuthService.create_account(
            db, email, password, AccountRole.RESERVIST, first_name, last_name,
            middle_name=middle_name, phone=phone, status=AccountStatus.PENDING, commit=False
        )
        account.reservist_details = ReservistDetail(
            service_number=service_number,
            company=company,
            rank=rank,
            reservist_status=ReservistStatus.READY,
        )
        db.commit()
        logger.info(f"Reservist registered (pending approval): {account.email}")
        return account

    @staticmethod
    def set_staff_companies(db: Session, staff: StaffDetail, companies: Iterable[str]):
        """Replace a staff member's assigned companies; every code must be an existing company."""
        codes = sorted({c.strip().upper() for c in companies if c and c.strip()})
        if codes:
            known = {c.code for c in db.query(Company).filter(Company.code.in_(codes)).all()}
            unknown = [c for c in codes if c not in known]
            if unknown:
                raise ValidationError(f"Unknown companies: {', '.join(unknown)}")
        # Keep surviving rows so the (staff, company) unique constraint is never hit mid-flush
        kept = [a for a in staff.assignments if a.company_code in codes]
        kept_codes = {a.company_code for a in kept}
        staff.assignments = kept + [StaffCompanyAssignment(company_code=c) for c in codes if c not in kept_codes]

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Optional[Account]:
        """
        Verify credentials with lockout protection.

        Status is not checked here; callers decide what a non-active account may do.

        Returns:
            Account if the password matches, None otherwise
        """
        account = AuthService.get_account_by_email(db, email)
        if not account:
            return None

        if account.is_locked:
            if account.locked_until and account.locked_until > datetime.utcnow():
                logger.warning(f"Login attempt for locked account: {account.email}")
                return None
            account.is_locked = False
            account.locked_until = None
            account.failed_login_attempts = 0

        if not verify_password(password, account.hashed_password):
            account.failed_login_attempts += 1
            if account.failed_login_attempts >= config.MAX_LOGIN_ATTEMPTS:
                account.is_locked = True
                account.locked_until = datetime.utcnow() + timedelta(minutes=config.LOCKOUT_DURATION_MINUTES)
                logger.warning(f"Account locked due to too many failed attempts: {account.email}")
            db.commit()
            return None

        account.failed_login_attempts = 0
        account.is_locked = False
        account.locked_until = None
        db.commit()
        return account

    @staticmethod
    def create_tokens(account: Account) -> Tuple[str, str]:
        """
        Create access and refresh tokens.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        data = {"sub": str(account.id), "role": account.role.value}
        return create_access_token(data), create_refresh_token({"sub": str(account.id)})

    @staticmethod
    def save_refresh_token(
        db: Session,
        account_id: int,
        refresh_token: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> RefreshToken:
        """Persist the hash of a refresh token."""
        token = RefreshToken(
            account_id=account_id,
            token_hash=generate_refresh_token_hash(refresh_token),
            device_info=device_info[:255] if device_info else None,
            ip_address=ip_address,
            expires_at=datetime.utcnow() + timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
        )
        db.add(token)
        db.commit()
        return token

    @staticmethod
    def login(
        db: Session,
        account: Account,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Tuple[str, str]:
        """Issue tokens for an authenticated, active account and stamp last_login_at."""
        access_token, refresh_token = AuthService.create_tokens(account)
        account.last_login_at = datetime.utcnow()
        AuthService.save_refresh_token(db, account.id, refresh_token, device_info, ip_address)
        return access_token, refresh_token

    @staticmethod
    def rotate_refresh_token(
        db: Session,
        refresh_token: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> Tuple[Account, str, str]:
        """
        Exchange a refresh token for a new token pair; the old one is revoked.

        Raises:
            AuthenticationError: invalid, revoked or expired token, or non-active account
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None:
            raise AuthenticationError("Invalid refresh token")

        token_hash = generate_refresh_token_hash(refresh_token)
        stored = db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False,
            RefreshToken.expires_at > datetime.utcnow()
        ).first()
        if not stored:
            raise AuthenticationError("Refresh token not found or expired")

        account = AuthService.get_account_by_id(db, stored.account_id)
        if not account or account.status != AccountStatus.ACTIVE:
            raise AuthenticationError("User not found or inactive")

        stored.is_revoked = True
        stored.revoked_at = datetime.utcnow()
        access_token, new_refresh = AuthService.create_tokens(account)
        AuthService.save_refresh_token(db, account.id, new_refresh, device_info, ip_address)
        return account, access_token, new_refresh

    @staticmethod
    def revoke_all_refresh_tokens(db: Session, account_id: int) -> int:
        """Revoke every live refresh token of an account; returns how many."""
        tokens = db.query(RefreshToken).filter(
            RefreshToken.account_id == account_id,
            RefreshToken.is_revoked == False
        ).all()
        now = datetime.utcnow()
        for token in tokens:
            token.is_revoked = True
            token.revoked_at = now
        db.commit()
        return len(tokens)
