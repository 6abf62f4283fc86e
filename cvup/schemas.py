from datetime import date as date_type, datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SessionStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]
ParticipantStatus = Literal["registered", "present", "partial", "absent"]
EnrollmentStatus = Literal["enrolled", "in-progress", "completed", "dropped"]
CompletionStatus = Literal["not_started", "in_progress", "completed"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Training sessions -------------------------------------------------------

class SessionCreate(BaseModel):
    created_by: str
    title: str
    description: Optional[str] = None
    date: Optional[date_type] = None
    start_time: datetime
    end_time: datetime
    instructor_id: Optional[str] = None
    type: str = "webinar"
    location: Optional[str] = None
    capacity: int = Field(20, ge=1)
    meet_link: Optional[str] = None
    zoom_meeting_id: Optional[str] = None
    zoom_meeting_uuid: Optional[str] = None
    zoom_join_url: Optional[str] = None
    zoom_password: Optional[str] = None


class SessionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[date_type] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    instructor_id: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    status: Optional[SessionStatus] = None
    meet_link: Optional[str] = None
    zoom_meeting_id: Optional[str] = None
    zoom_meeting_uuid: Optional[str] = None
    zoom_join_url: Optional[str] = None
    zoom_password: Optional[str] = None


class SessionOut(ORMModel):
    id: str
    created_by: str
    title: str
    description: Optional[str]
    date: Optional[date_type]
    start_time: datetime
    end_time: datetime
    instructor_id: Optional[str]
    instructor_name: str
    type: Optional[str]
    location: Optional[str]
    capacity: int
    enrolled: int
    status: str
    meet_link: Optional[str]
    zoom_meeting_id: Optional[str]
    zoom_meeting_uuid: Optional[str]
    zoom_join_url: Optional[str]
    zoom_password: Optional[str]


class MeetingCreate(BaseModel):
    duration: Optional[int] = Field(None, gt=0)
    timezone: Optional[str] = None
    agenda: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


# --- Participants ------------------------------------------------------------

class RegistrationCreate(BaseModel):
    user_id: str


class ParticipantUpdate(BaseModel):
    attendance_percentage: Optional[float] = Field(None, ge=0, le=100)
    join_time: Optional[datetime] = None
    leave_time: Optional[datetime] = None
    status: Optional[ParticipantStatus] = None
    notified: Optional[bool] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    attentiveness_score: Optional[float] = None
    feedback: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)


class ParticipantOut(ORMModel):
    id: str
    session_id: str
    user_id: Optional[str]
    user_name: str
    email: Optional[str]
    zoom_participant_uuid: Optional[str]
    zoom_user_id: Optional[str]
    attendance_percentage: Optional[float]
    join_time: Optional[datetime]
    leave_time: Optional[datetime]
    duration_seconds: Optional[int]
    status: str
    notified: bool
    attentiveness_score: Optional[float]


class SyncRequest(BaseModel):
    zoom_meeting_id: Optional[str] = None


class SyncResult(BaseModel):
    synced: int = 0
    skipped: int = 0
    errors: int = 0


class AttendanceReport(BaseModel):
    session_id: str
    total: int
    present: int
    partial: int
    absent: int
    registered: int
    average_attendance: float
    participants: List[ParticipantOut]


# --- Recordings --------------------------------------------------------------

class RecordingOut(ORMModel):
    id: str
    session_id: str
    zoom_meeting_id: Optional[str]
    title: str
    date: Optional[date_type]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    duration_seconds: Optional[int]
    thumbnail_url: Optional[str]
    file_size_bytes: Optional[int]
    views: int
    download_url: Optional[str]
    play_url: Optional[str]
    storage_path: Optional[str]
    recording_type: Optional[str]


class RecordingImport(BaseModel):
    zoom_meeting_id: Optional[str] = None
    store: bool = False


# --- Browser extension -------------------------------------------------------

class ExtensionParticipant(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    join_time: Optional[str] = None
    leave_time: Optional[str] = None
    attentiveness_score: Optional[float] = None


class ExtensionRecordingData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meeting_id: Optional[str] = Field(None, alias="meetingId")
    platform: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    title: Optional[str] = None
    recording_type: Optional[str] = None
    file_size: Optional[int] = None
    file_path: Optional[str] = None
    download_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    share_url: Optional[str] = None
    password: Optional[str] = None
    participants: List[Union[ExtensionParticipant, str]] = []


class ExtensionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    meeting_id: Optional[str] = Field(None, alias="meetingId")
    platform: Optional[str] = None
    url: Optional[str] = None
    recording_data: Optional[ExtensionRecordingData] = Field(None, alias="recordingData")


class ExtensionRegister(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    extension_id: str = Field(alias="extensionId")
    version: str
    settings: Optional[Dict[str, Any]] = None


# --- Courses -----------------------------------------------------------------

class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    level: Optional[str] = None
    category: Optional[str] = None
    instructor_id: str
    is_published: bool = False


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    level: Optional[str] = None
    category: Optional[str] = None
    is_published: Optional[bool] = None


class CourseOut(ORMModel):
    id: str
    title: str
    description: Optional[str]
    thumbnail_url: Optional[str]
    duration: Optional[str]
    level: Optional[str]
    category: Optional[str]
    instructor_id: str
    instructor_name: str
    is_published: bool
    created_at: datetime
    updated_at: Optional[datetime]


class ContentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    content_type: str
    content_url: Optional[str] = None
    content_data: Optional[Any] = None
    duration: Optional[str] = None
    sequence_order: int = 0
    is_published: bool = False


class ContentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content_type: Optional[str] = None
    content_url: Optional[str] = None
    content_data: Optional[Any] = None
    duration: Optional[str] = None
    sequence_order: Optional[int] = None
    is_published: Optional[bool] = None


class ContentOut(ORMModel):
    id: str
    course_id: str
    title: str
    description: Optional[str]
    content_type: str
    content_url: Optional[str]
    content_data: Optional[Any]
    duration: Optional[str]
    sequence_order: int
    is_published: bool


class EnrollmentCreate(BaseModel):
    user_id: str


class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatus
    completion_date: Optional[datetime] = None


class EnrollmentOut(ORMModel):
    id: str
    user_id: str
    course_id: str
    enrollment_date: datetime
    completion_date: Optional[datetime]
    progress: int
    status: str
    last_accessed_at: Optional[datetime]


class ProgressUpdate(BaseModel):
    user_id: str
    completion_status: Optional[CompletionStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    last_position: Optional[int] = Field(None, ge=0)
    quiz_score: Optional[float] = None


class ProgressOut(ORMModel):
    id: str
    user_id: str
    course_id: str
    content_id: str
    completion_status: str
    progress: int
    last_position: int
    quiz_score: Optional[float]
    completed_at: Optional[datetime]


class CertificateCreate(BaseModel):
    user_id: str
    certificate_data: Optional[Dict[str, Any]] = None


class CertificateUrlUpdate(BaseModel):
    certificate_url: str


class CertificateOut(ORMModel):
    id: str
    user_id: str
    course_id: str
    issue_date: datetime
    certificate_url: Optional[str]
    certificate_data: Optional[Any]
    is_valid: bool


# --- Profiles & admin --------------------------------------------------------

class ProfileCreate(BaseModel):
    id: Optional[str] = None
    email: EmailStr
    full_name: str
    title: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileOut(ORMModel):
    id: str
    email: Optional[str]
    full_name: str
    title: Optional[str]
    bio: Optional[str]
    avatar_url: Optional[str]
    role: Optional[str]
    status: Optional[str]
    last_login: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]


class UserStatusUpdate(BaseModel):
    status: Literal["active", "inactive", "pending"]


class UserRoleUpdate(BaseModel):
    role: str


class AdminStats(BaseModel):
    total_users: int
    total_cvs: int
    total_training_sessions: int
    monthly_growth: float


# --- CVs, LinkedIn, interviews -----------------------------------------------

class CVTemplateOut(ORMModel):
    id: str
    name: str
    description: Optional[str]
    thumbnail_url: Optional[str]
    is_premium: bool
    is_popular: bool
    category: Optional[str]
    structure: Optional[Any]
    created_at: datetime


class CVCreate(BaseModel):
    user_id: str
    template_id: Optional[str] = None
    title: str
    content: Dict[str, Any] = {}


class CVUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    is_public: Optional[bool] = None


class CVOut(ORMModel):
    id: str
    user_id: str
    template_id: Optional[str]
    title: str
    content: Optional[Dict[str, Any]]
    is_public: bool
    created_at: datetime
    last_updated: Optional[datetime]


class LinkedInProfileIn(BaseModel):
    profile_url: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    skills: Optional[List[str]] = None
    experience: Optional[List[Any]] = None
    education: Optional[List[Any]] = None
    profile_score: Optional[int] = Field(None, ge=0, le=100)


class LinkedInProfileOut(ORMModel):
    id: str
    user_id: str
    profile_url: Optional[str]
    headline: Optional[str]
    summary: Optional[str]
    skills: Optional[List[str]]
    experience: Optional[List[Any]]
    education: Optional[List[Any]]
    profile_score: Optional[int]
    last_updated: Optional[datetime]


class LinkedInOptimizationOut(ORMModel):
    id: str
    category: str
    title: str
    description: Optional[str]
    impact: Optional[str]
    implementation_guide: Optional[str]


class ContentIdeaOut(ORMModel):
    id: str
    title: str
    description: Optional[str]
    category: Optional[str]
    template: Optional[str]
    examples: Optional[List[str]]


class InterviewQuestionOut(ORMModel):
    id: str
    category: str
    question: str
    answer_guide: Optional[str]
    difficulty: Optional[str]
    tags: Optional[List[str]]


class MockInterviewOut(ORMModel):
    id: str
    title: str
    description: Optional[str]
    category: Optional[str]
    duration: Optional[int]
    question_ids: Optional[List[str]]
    tags: Optional[List[str]]


class InterviewSessionStart(BaseModel):
    user_id: str
    mock_interview_id: str


class InterviewSessionComplete(BaseModel):
    score: float
    feedback: Optional[Any] = None
    recording_url: Optional[str] = None


class InterviewSessionOut(ORMModel):
    id: str
    user_id: str
    mock_interview_id: str
    started_at: datetime
    completed_at: Optional[datetime]
    score: Optional[float]
    feedback: Optional[Any]
    recording_url: Optional[str]
