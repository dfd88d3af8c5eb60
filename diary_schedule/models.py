# diary_schedule/models.py
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from diary_schedule.db import Base


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    slot_number = Column(Integer, nullable=False, unique=True)  # 1 = first lesson of the day
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)


class ClassTimeSlot(Base):
    __tablename__ = "class_time_slots"
    __table_args__ = (
        UniqueConstraint("class_id", "slot_number", name="uq_class_time_slots_class_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, nullable=False, index=True)
    slot_number = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, nullable=False, index=True)
    subject_id = Column(Integer, nullable=False)
    teacher_id = Column(Integer, nullable=False, index=True)
    # day of week is derived from schedule_date, never stored
    schedule_date = Column(Date, nullable=False, index=True)
    slot_number = Column(Integer, nullable=False)
    room = Column(String(50), nullable=True)
    subgroup_id = Column(Integer, nullable=True)


class Subgroup(Base):
    __tablename__ = "subgroups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    class_id = Column(Integer, nullable=False, index=True)


class StudentSubgroup(Base):
    __tablename__ = "student_subgroups"
    __table_args__ = (
        UniqueConstraint("student_id", "subgroup_id", name="uq_student_subgroups"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    subgroup_id = Column(Integer, nullable=False)


class StudentClass(Base):
    __tablename__ = "student_classes"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_student_classes"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    class_id = Column(Integer, nullable=False)


class ParentStudent(Base):
    __tablename__ = "parent_students"

    id = Column(Integer, primary_key=True, index=True)
    parent_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    active_role = Column(String(30), nullable=True)
    class_id = Column(Integer, nullable=True)  # student: own class, class teacher: led class


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
